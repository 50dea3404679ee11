"""
HTTP API for the consent logger.
"""

"""
Business services: consent capture, proofs, cookie discovery and scheduling.
"""

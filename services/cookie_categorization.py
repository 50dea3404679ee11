"""
Rule-based cookie categorization.

Rules are evaluated in a fixed priority order:
1. necessary
2. functional
3. analytics
4. advertisement

For each rule, a regex pattern match on the lower-cased cookie name wins
first; otherwise a keyword found in the lower-cased name, description or
source wins. The first matching rule decides. Cookies no rule matches
are categorized as functional, so they surface for review instead of
being silently treated as harmless or high risk.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Pattern, Tuple

from models.cookie import CookieCategory

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = CookieCategory.FUNCTIONAL


@dataclass(frozen=True)
class CategoryRule:
    """Patterns and keywords that assign one category."""
    category: CookieCategory
    patterns: Tuple[Pattern, ...]
    keywords: Tuple[str, ...]

    def matches(self, name: str, description: str, source: str) -> bool:
        if any(pattern.search(name) for pattern in self.patterns):
            return True
        return any(
            keyword in name or keyword in description or keyword in source
            for keyword in self.keywords
        )


def _rule(category: CookieCategory, patterns, keywords) -> CategoryRule:
    return CategoryRule(
        category=category,
        patterns=tuple(re.compile(p) for p in patterns),
        keywords=tuple(keywords),
    )


# Order is significant
CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    _rule(
        CookieCategory.NECESSARY,
        [r'^wordpress_', r'^wp-', r'phpsessid', r'session', r'csrf', r'security'],
        ['login', 'auth', 'session', 'security', 'csrf', 'nonce', 'cart', 'checkout'],
    ),
    _rule(
        CookieCategory.FUNCTIONAL,
        [r'^pref_', r'^settings_', r'language', r'currency'],
        ['preference', 'settings', 'language', 'currency', 'region', 'theme'],
    ),
    _rule(
        CookieCategory.ANALYTICS,
        [r'^_ga', r'^_gid', r'^_gat', r'^_gtm', r'analytics', r'stats'],
        ['analytics', 'tracking', 'statistics', 'stats', 'visitor', 'pageview'],
    ),
    _rule(
        CookieCategory.ADVERTISEMENT,
        [r'^_fb', r'^fr$', r'ads', r'doubleclick', r'adsystem'],
        ['ads', 'advertising', 'marketing', 'retargeting', 'facebook', 'google-ads'],
    ),
)


def _lower(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "value"):
        value = value.value
    return str(value).lower()


def classify_cookie(name: Optional[str], metadata: Optional[Mapping[str, Any]] = None) -> CookieCategory:
    """
    Categorize a cookie by name and optional metadata.

    Args:
        name: Cookie name
        metadata: Optional mapping with 'description' and 'source'

    Returns:
        The category of the first matching rule, functional when none match
    """
    metadata = metadata or {}
    name_lower = _lower(name)
    description = _lower(metadata.get("description"))
    source = _lower(metadata.get("source"))

    for rule in CATEGORY_RULES:
        if rule.matches(name_lower, description, source):
            return rule.category

    logger.debug(f"No categorization rule matched cookie '{name}', using {DEFAULT_CATEGORY.value}")
    return DEFAULT_CATEGORY

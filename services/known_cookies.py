"""
Registry of well-known cookies set by common site components.

A component's cookies are included in a scan only when the component
is listed in ``SCAN_ACTIVE_COMPONENTS``.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from models.cookie import CookieCategory, CookieSource, DiscoveredCookie


@dataclass(frozen=True)
class KnownCookie:
    category: CookieCategory
    description: str


KNOWN_COOKIES: Dict[str, KnownCookie] = {
    # WordPress core
    'wordpress_test_cookie': KnownCookie(CookieCategory.NECESSARY, 'WordPress test cookie'),
    'wordpress_logged_in_': KnownCookie(CookieCategory.NECESSARY, 'WordPress login cookie'),
    'wp-settings-': KnownCookie(CookieCategory.NECESSARY, 'WordPress user settings'),

    # Google Analytics
    '_ga': KnownCookie(CookieCategory.ANALYTICS, 'Google Analytics - Main cookie'),
    '_gid': KnownCookie(CookieCategory.ANALYTICS, 'Google Analytics - Session cookie'),
    '_gat': KnownCookie(CookieCategory.ANALYTICS, 'Google Analytics - Throttling cookie'),
    '_gtm': KnownCookie(CookieCategory.ANALYTICS, 'Google Tag Manager'),

    # Facebook
    '_fbp': KnownCookie(CookieCategory.ADVERTISEMENT, 'Facebook Pixel'),
    '_fbc': KnownCookie(CookieCategory.ADVERTISEMENT, 'Facebook Click ID'),

    # WooCommerce
    'woocommerce_cart_hash': KnownCookie(CookieCategory.NECESSARY, 'WooCommerce cart hash'),
    'woocommerce_items_in_cart': KnownCookie(CookieCategory.NECESSARY, 'WooCommerce cart items'),
    'wp_woocommerce_session_': KnownCookie(CookieCategory.NECESSARY, 'WooCommerce session'),

    # Common plugins
    'mailchimp_landing_site': KnownCookie(CookieCategory.FUNCTIONAL, 'Mailchimp landing page tracking'),
    'PHPSESSID': KnownCookie(CookieCategory.NECESSARY, 'PHP Session ID'),
}

COMPONENT_COOKIES: Dict[str, Tuple[str, ...]] = {
    'wordpress': ('wordpress_test_cookie', 'wordpress_logged_in_', 'wp-settings-'),
    'google-analytics-for-wordpress': ('_ga', '_gid'),
    'google-analytics-dashboard-for-wp': ('_ga', '_gid'),
    'googleanalytics': ('_ga', '_gid'),
    'facebook-for-woocommerce': ('_fbp',),
    'official-facebook-pixel': ('_fbp',),
    'woocommerce': ('woocommerce_cart_hash', 'woocommerce_items_in_cart', 'wp_woocommerce_session_'),
    'mailchimp-for-wp': ('mailchimp_landing_site',),
    'php-session': ('PHPSESSID',),
}


def cookies_for_components(components: Iterable[str]) -> List[DiscoveredCookie]:
    """
    Known cookies contributed by the given active components.

    The first component that contributes a name keeps it. Unknown
    component slugs are ignored.
    """
    cookies: Dict[str, DiscoveredCookie] = {}
    for component in components:
        slug = component.strip().lower()
        for name in COMPONENT_COOKIES.get(slug, ()):
            if name in cookies:
                continue
            known = KNOWN_COOKIES[name]
            cookies[name] = DiscoveredCookie(
                name=name,
                source=CookieSource.KNOWN_REGISTRY,
                description=known.description,
                category_hint=known.category,
                component=slug,
            )
    return list(cookies.values())

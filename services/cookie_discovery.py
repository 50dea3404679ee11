"""
Cookie discovery from three sources, merged in order:

1. ``Set-Cookie`` headers of one fetch of the site home page
2. Static pattern scan of a bounded set of local JavaScript files
3. The known-cookie registry for active components

The first source to report a name keeps its data. Later sources only
fill fields that are still empty.
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import requests

from core.exceptions import TransientFetchFailure
from models.cookie import CookieSource, DiscoveredCookie
from services.known_cookies import cookies_for_components

logger = logging.getLogger(__name__)

SCRIPT_EXTENSION = '.js'
MINIFIED_MARKER = '.min.'

SCRIPT_COOKIE_PATTERNS = (
    re.compile(r'document\.cookie\s*=\s*["\']([^"\'=;\s]+)='),
    re.compile(r'setCookie\(\s*["\']([^"\']+)["\']'),
    re.compile(r'Cookies\.set\(\s*["\']([^"\']+)["\']'),
    # Known tracker cookie names; longest alternatives first
    re.compile(r'\b(_gat|_gid|_gtm|_fbp|_fbc|_ga)\b'),
)

# Fields a later source may fill when the earlier one left them empty
FILLABLE_FIELDS = ('domain', 'expires', 'description', 'category_hint', 'component', 'same_site')


def parse_set_cookie(header: str) -> Optional[DiscoveredCookie]:
    """
    Parse one Set-Cookie header value.

    The cookie value itself is discarded. Returns None for malformed
    headers (no name=value pair or an empty name).
    """
    parts = [part.strip() for part in header.split(';')]
    if not parts or '=' not in parts[0]:
        return None

    name = parts[0].split('=', 1)[0].strip()
    if not name:
        return None

    attrs: Dict[str, Optional[str]] = {}
    for part in parts[1:]:
        if not part:
            continue
        key, sep, value = part.partition('=')
        attrs[key.strip().lower()] = value.strip() if sep else None

    expires = attrs.get('expires') or ''
    if not expires and attrs.get('max-age'):
        expires = f"max-age={attrs['max-age']}"

    return DiscoveredCookie(
        name=name,
        source=CookieSource.RESPONSE_HEADER,
        domain=attrs.get('domain') or '',
        path=attrs.get('path') or '/',
        secure='secure' in attrs,
        http_only='httponly' in attrs,
        same_site=attrs.get('samesite') or '',
        expires=expires,
    )


def _set_cookie_headers(response) -> List[str]:
    """All Set-Cookie header lines of a response, unjoined."""
    raw_headers = getattr(getattr(response, 'raw', None), 'headers', None)
    if raw_headers is not None and hasattr(raw_headers, 'getlist'):
        return list(raw_headers.getlist('Set-Cookie'))
    combined = response.headers.get('Set-Cookie')
    return [combined] if combined else []


def collect_script_files(directory: Optional[str], limit: int) -> List[Path]:
    """
    Up to ``limit`` non-minified .js files under directory, in sorted walk order.

    Minified files are skipped and do not count against the cap.
    """
    if not directory or limit <= 0 or not os.path.isdir(directory):
        return []

    files: List[Path] = []
    for root, dirs, names in os.walk(directory):
        dirs.sort()
        for name in sorted(names):
            if not name.endswith(SCRIPT_EXTENSION) or MINIFIED_MARKER in name:
                continue
            files.append(Path(root) / name)
            if len(files) >= limit:
                return files
    return files


def scan_script(path: Path) -> List[DiscoveredCookie]:
    """Cookie names a script sets or references, in order of first match."""
    try:
        content = path.read_text(encoding='utf-8', errors='ignore')
    except OSError as e:
        logger.warning(f"Skipping unreadable script {path}: {e}")
        return []

    found: Dict[str, DiscoveredCookie] = {}
    for pattern in SCRIPT_COOKIE_PATTERNS:
        for match in pattern.finditer(content):
            name = match.group(1).strip()
            if name and name not in found:
                found[name] = DiscoveredCookie(
                    name=name,
                    source=CookieSource.SCRIPT_SCAN,
                    file=path.name,
                )
    return list(found.values())


def merge_discoveries(batches: Iterable[Iterable[DiscoveredCookie]]) -> Dict[str, DiscoveredCookie]:
    """Merge source batches; earlier data wins, later data fills gaps."""
    merged: Dict[str, DiscoveredCookie] = {}
    for batch in batches:
        for cookie in batch:
            existing = merged.get(cookie.name)
            if existing is None:
                merged[cookie.name] = cookie
                continue
            updates = {
                field: getattr(cookie, field)
                for field in FILLABLE_FIELDS
                if not getattr(existing, field) and getattr(cookie, field)
            }
            if updates:
                merged[cookie.name] = existing.model_copy(update=updates)
    return merged


class CookieDiscovery:
    """Gathers candidate cookies for one scan."""

    def __init__(self, scan_config):
        """
        Args:
            scan_config: ScanConfig instance
        """
        self.config = scan_config

    def fetch_response_cookies(self) -> List[DiscoveredCookie]:
        """
        Fetch the site home page once and parse its Set-Cookie headers.

        Raises:
            TransientFetchFailure: The request failed or timed out
        """
        url = self.config.site_url
        try:
            # Headers only; the body is never read
            with requests.get(
                url,
                timeout=self.config.fetch_timeout,
                headers={'User-Agent': self.config.user_agent},
                allow_redirects=True,
                stream=True,
            ) as response:
                status_code = response.status_code
                headers = _set_cookie_headers(response)
        except requests.RequestException as e:
            raise TransientFetchFailure(
                f"Failed to fetch {url}: {e}",
                details={"url": url}
            ) from e

        cookies = []
        for header in headers:
            cookie = parse_set_cookie(header)
            if cookie is None:
                logger.debug(f"Ignoring malformed Set-Cookie header from {url}")
                continue
            cookies.append(cookie)

        logger.info(f"Fetched {url} (HTTP {status_code}): {len(cookies)} cookie(s) in headers")
        return cookies

    def scan_scripts(self) -> List[DiscoveredCookie]:
        """Pattern-scan theme scripts and allow-listed plugin scripts."""
        files = collect_script_files(self.config.theme_dir, self.config.theme_file_limit)

        if self.config.plugins_dir:
            for plugin in self.config.script_plugins:
                plugin_dir = os.path.join(self.config.plugins_dir, plugin)
                files.extend(collect_script_files(plugin_dir, self.config.plugin_file_limit))

        cookies: List[DiscoveredCookie] = []
        for path in files:
            cookies.extend(scan_script(path))

        logger.info(f"Scanned {len(files)} script file(s): {len(cookies)} cookie reference(s)")
        return cookies

    def known_cookies(self) -> List[DiscoveredCookie]:
        return cookies_for_components(self.config.active_components)

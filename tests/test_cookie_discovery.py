"""
Unit tests for cookie discovery: Set-Cookie parsing, script scanning,
the known-cookie registry and source merging.
"""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import MagicMock, patch

import pytest
import requests

from core.exceptions import TransientFetchFailure
from models.cookie import CookieCategory, CookieSource, DiscoveredCookie
from services.cookie_discovery import (
    CookieDiscovery,
    collect_script_files,
    merge_discoveries,
    parse_set_cookie,
    scan_script,
)
from services.known_cookies import cookies_for_components


def _write(path, content=""):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class SlowBodyHandler(BaseHTTPRequestHandler):
    """Sends headers at once, then trickles the body one byte per second."""

    body_seconds = 6

    def do_GET(self):
        self.send_response(200)
        self.send_header("Set-Cookie", "slow_sid=abc; Path=/; HttpOnly")
        self.send_header("Content-Length", str(self.body_seconds))
        self.end_headers()
        try:
            for _ in range(self.body_seconds):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(1)
        except OSError:
            # client hung up
            return

    def log_message(self, format, *args):
        pass


@pytest.fixture
def slow_body_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), SlowBodyHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/"
    server.shutdown()
    server.server_close()


class TestParseSetCookie:

    def test_attributes(self):
        cookie = parse_set_cookie(
            "sid=abc123; Domain=.example.com; Path=/shop; Expires=Wed, 21 Oct 2026 07:28:00 GMT; "
            "Secure; HttpOnly; SameSite=Lax"
        )

        assert cookie.name == "sid"
        assert cookie.source == CookieSource.RESPONSE_HEADER
        assert cookie.domain == ".example.com"
        assert cookie.path == "/shop"
        assert cookie.expires == "Wed, 21 Oct 2026 07:28:00 GMT"
        assert cookie.secure is True
        assert cookie.http_only is True
        assert cookie.same_site == "Lax"

    def test_defaults(self):
        cookie = parse_set_cookie("lang=en")

        assert cookie.path == "/"
        assert cookie.secure is False
        assert cookie.http_only is False
        assert cookie.expires == ""

    def test_max_age_used_without_expires(self):
        assert parse_set_cookie("a=1; Max-Age=3600").expires == "max-age=3600"

    @pytest.mark.parametrize("header", ["", "novalue", "=orphan; Path=/", "; Secure"])
    def test_malformed_returns_none(self, header):
        assert parse_set_cookie(header) is None


class TestScriptScan:

    def test_patterns(self, tmp_path):
        script = _write(tmp_path / "app.js", "\n".join([
            'document.cookie = "visitor_pref=dark; path=/";',
            "setCookie('newsletter_shown', 1, 30);",
            'Cookies.set("cart_token", token);',
            "ga('create', 'UA-1'); // sets _ga and _gid",
        ]))

        names = [cookie.name for cookie in scan_script(script)]

        assert names == ["visitor_pref", "newsletter_shown", "cart_token", "_ga", "_gid"]
        assert all(c.source == CookieSource.SCRIPT_SCAN for c in scan_script(script))
        assert scan_script(script)[0].file == "app.js"

    def test_tracker_names_need_word_boundary(self, tmp_path):
        script = _write(tmp_path / "x.js", "var my_gathering = 1; var _gatsby = 2;")
        assert scan_script(script) == []

    def test_collect_skips_minified_and_caps(self, tmp_path):
        theme = tmp_path / "theme"
        _write(theme / "a.js")
        _write(theme / "b.min.js")
        _write(theme / "c.js")
        _write(theme / "style.css")
        _write(theme / "sub" / "d.js")

        files = collect_script_files(str(theme), limit=2)

        assert [f.name for f in files] == ["a.js", "c.js"]

    def test_collect_missing_directory(self, tmp_path):
        assert collect_script_files(str(tmp_path / "absent"), limit=5) == []
        assert collect_script_files(None, limit=5) == []


class TestKnownCookies:

    def test_active_components_only(self):
        cookies = cookies_for_components(["woocommerce", "unknown-plugin"])

        assert [c.name for c in cookies] == [
            "woocommerce_cart_hash", "woocommerce_items_in_cart", "wp_woocommerce_session_",
        ]
        assert all(c.source == CookieSource.KNOWN_REGISTRY for c in cookies)
        assert all(c.category_hint == CookieCategory.NECESSARY for c in cookies)
        assert cookies[0].component == "woocommerce"

    def test_first_component_keeps_shared_cookie(self):
        cookies = cookies_for_components(["googleanalytics", "google-analytics-for-wordpress"])

        assert [c.name for c in cookies] == ["_ga", "_gid"]
        assert cookies[0].component == "googleanalytics"

    def test_no_components(self):
        assert cookies_for_components([]) == []


class TestMerge:

    def test_earlier_source_wins_later_fills_gaps(self):
        header = DiscoveredCookie(name="_ga", source=CookieSource.RESPONSE_HEADER, domain=".example.com")
        known = DiscoveredCookie(
            name="_ga",
            source=CookieSource.KNOWN_REGISTRY,
            domain=".other.com",
            description="Google Analytics - Main cookie",
            category_hint=CookieCategory.ANALYTICS,
        )

        merged = merge_discoveries([[header], [known]])

        cookie = merged["_ga"]
        assert cookie.source == CookieSource.RESPONSE_HEADER
        assert cookie.domain == ".example.com"
        assert cookie.description == "Google Analytics - Main cookie"
        assert cookie.category_hint == CookieCategory.ANALYTICS

    def test_distinct_names_kept(self):
        merged = merge_discoveries([
            [DiscoveredCookie(name="a", source=CookieSource.SCRIPT_SCAN)],
            [DiscoveredCookie(name="b", source=CookieSource.SCRIPT_SCAN)],
        ])
        assert list(merged) == ["a", "b"]


class TestCookieDiscovery:

    @pytest.fixture
    def discovery(self, config):
        return CookieDiscovery(config.scan)

    def test_fetch_parses_every_set_cookie_header(self, discovery):
        response = MagicMock()
        response.__enter__.return_value = response
        response.status_code = 200
        response.raw.headers.getlist.return_value = ["sid=1; HttpOnly", "lang=en; Path=/", "broken"]

        with patch("services.cookie_discovery.requests.get", return_value=response) as get:
            cookies = discovery.fetch_response_cookies()

        assert [c.name for c in cookies] == ["sid", "lang"]
        _, kwargs = get.call_args
        assert kwargs["timeout"] == 30
        assert kwargs["allow_redirects"] is True
        assert kwargs["stream"] is True
        response.__exit__.assert_called_once()
        assert "User-Agent" in kwargs["headers"]

    def test_fetch_failure_is_transient(self, discovery):
        with patch(
            "services.cookie_discovery.requests.get",
            side_effect=requests.ConnectionError("refused"),
        ):
            with pytest.raises(TransientFetchFailure):
                discovery.fetch_response_cookies()

    def test_slow_body_does_not_hold_fetch(self, config, slow_body_server):
        scan_config = config.scan.model_copy(update={"site_url": slow_body_server, "fetch_timeout": 2})

        started = time.monotonic()
        cookies = CookieDiscovery(scan_config).fetch_response_cookies()
        elapsed = time.monotonic() - started

        assert [c.name for c in cookies] == ["slow_sid"]
        assert elapsed < 3

    def test_scan_scripts_theme_and_allowed_plugins(self, config, discovery, tmp_path):
        _write(tmp_path / "theme" / "main.js", "setCookie('theme_cookie', 1);")
        _write(tmp_path / "plugins" / "google-analytics" / "ga.js", "// _gat")
        _write(tmp_path / "plugins" / "other-plugin" / "x.js", "setCookie('ignored', 1);")

        names = {c.name for c in discovery.scan_scripts()}

        assert names == {"theme_cookie", "_gat"}

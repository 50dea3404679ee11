"""
Cookie discovery data models.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class CookieCategory(str, Enum):
    """Compliance category of a cookie."""
    NECESSARY = "necessary"
    FUNCTIONAL = "functional"
    ANALYTICS = "analytics"
    ADVERTISEMENT = "advertisement"


class CookieSource(str, Enum):
    """Where a cookie was observed."""
    RESPONSE_HEADER = "response-header"
    SCRIPT_SCAN = "script-scan"
    KNOWN_REGISTRY = "known-registry"


class DiscoveredCookie(BaseModel):
    """A cookie observed during one scan, before classification."""
    name: str
    source: CookieSource
    domain: str = ""
    path: str = "/"
    secure: bool = False
    http_only: bool = False
    same_site: str = ""
    expires: str = ""
    description: str = ""
    category_hint: Optional[CookieCategory] = Field(
        None, description="Category suggested by the known-cookie registry"
    )
    component: str = Field(default="", description="Active component that contributed the cookie")
    file: str = Field(default="", description="Script file name for script-scan hits")


class TrackedCookie(DiscoveredCookie):
    """Registry entry for a cookie the system knows about."""
    category: CookieCategory
    discovered_at: datetime


class ScanOutcome(BaseModel):
    """Result of one scanner run."""
    trigger: str
    observed: int = 0
    new_cookies: Dict[str, TrackedCookie] = Field(default_factory=dict)
    fetch_failed: bool = False
    started_at: datetime
    finished_at: Optional[datetime] = None

    @property
    def new_count(self) -> int:
        return len(self.new_cookies)

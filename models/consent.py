"""
Consent-related data models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

CONSENT_ID_MAX_LENGTH = 64
STATUS_MAX_LENGTH = 20

# Categories a visitor can refuse; necessary cookies are always on
OPTIONAL_CATEGORIES = ('functional', 'analytics', 'performance', 'advertisement')


class ConsentStatus(str, Enum):
    """Status values sent by the reference banner client."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def derive_status(categories: Mapping[str, Any]) -> ConsentStatus:
    """
    Derive the status a banner client reports for a set of choices.

    Consent counts as rejected only when every optional category is
    explicitly False. A missing category counts as not refused.
    """
    if all(categories.get(name) is False for name in OPTIONAL_CATEGORIES):
        return ConsentStatus.REJECTED
    return ConsentStatus.ACCEPTED


class ConsentRecord(BaseModel):
    """Stored consent decision. Never modified after capture."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = Field(None, description="Storage row id, insertion ordered")
    consent_id: str = Field(..., max_length=CONSENT_ID_MAX_LENGTH)
    domain: str = Field(default="")
    status: str = Field(..., max_length=STATUS_MAX_LENGTH)
    categories: Dict[str, bool] = Field(default_factory=dict)
    ip: str = Field(default="", description="Anonymized address only")
    user_agent: str = Field(default="")
    country: str = Field(default="")
    created_at: datetime

    def accepted_categories(self) -> List[str]:
        return [name for name, accepted in self.categories.items() if accepted]


class ClientContext(BaseModel):
    """Request facts the HTTP layer hands to the recorder."""
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    host: Optional[str] = None


class ConsentReceipt(BaseModel):
    """Result of a successful consent write."""
    model_config = ConfigDict(populate_by_name=True)

    logged: bool = True
    consent_id: str = Field(..., serialization_alias="consentId")


class ConsentPage(BaseModel):
    """One page of an admin consent search."""
    items: List[ConsentRecord]
    total: int
    page: int
    per_page: int
    total_pages: int


class ConsentStats(BaseModel):
    """Aggregate numbers for the admin dashboard."""
    total: int
    last_30_days: int
    by_status: Dict[str, int]
    accepted_by_category: Dict[str, int]

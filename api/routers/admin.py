"""
Admin consent log endpoints: search, detail, statistics, CSV export,
proof download and fingerprint verification.
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel

from api.auth.api_key import SCOPE_CONSENT_EXPORT, SCOPE_CONSENT_READ, SCOPE_PROOF_READ
from api.auth.dependencies import require_scope
from api.dependencies import get_services
from models.consent import ConsentPage, ConsentRecord, ConsentStats
from services.consent_query import DEFAULT_PER_PAGE
from services.container import Services

router = APIRouter()

PROOF_CACHE_CONTROL = "private, max-age=0, must-revalidate"


class ConsentDetailResponse(BaseModel):
    """Every record stored under one consent id, earliest first."""
    consent_id: str
    records: List[ConsentRecord]


class DigestVerificationResponse(BaseModel):
    consent_id: str
    valid: bool


@router.get(
    "/consents",
    response_model=ConsentPage,
    dependencies=[Depends(require_scope(SCOPE_CONSENT_READ))],
)
def list_consents(
    search: str = Query("", max_length=200, description="Substring of consent id, IP, status or domain"),
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, description="One of 10, 25, 50, 100"),
    services: Services = Depends(get_services),
):
    return services.queries.search(search, page=page, per_page=per_page)


@router.get(
    "/consents/stats",
    response_model=ConsentStats,
    dependencies=[Depends(require_scope(SCOPE_CONSENT_READ))],
)
def consent_stats(services: Services = Depends(get_services)):
    return services.queries.stats()


@router.get(
    "/consents/export",
    dependencies=[Depends(require_scope(SCOPE_CONSENT_EXPORT))],
)
def export_consents(
    search: str = Query("", max_length=200),
    services: Services = Depends(get_services),
):
    """CSV download of matching records, newest first."""
    chunks = services.queries.export_csv(search)
    filename = f"consent-logs-{datetime.now(timezone.utc).strftime('%Y%m%d')}.csv"
    return StreamingResponse(
        chunks,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/consents/{consent_id}",
    response_model=ConsentDetailResponse,
    dependencies=[Depends(require_scope(SCOPE_CONSENT_READ))],
)
def get_consent(consent_id: str, services: Services = Depends(get_services)):
    records = services.queries.get(consent_id)
    return ConsentDetailResponse(consent_id=consent_id, records=records)


@router.get(
    "/consents/{consent_id}/proof",
    dependencies=[Depends(require_scope(SCOPE_PROOF_READ))],
    responses={200: {"content": {"application/pdf": {}, "text/html": {}}}},
)
def download_proof(
    consent_id: str,
    fmt: Optional[str] = Query(None, alias="format", description="pdf or html (defaults to PROOF_DEFAULT_FORMAT)"),
    services: Services = Depends(get_services),
):
    """Proof-of-consent document for the first record stored under the id."""
    artifact = services.proofs.generate_proof(consent_id, fmt)
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.filename}"',
            "Cache-Control": PROOF_CACHE_CONTROL,
            "X-Proof-Digest": artifact.digest,
        },
    )


@router.get(
    "/consents/{consent_id}/verify",
    response_model=DigestVerificationResponse,
    dependencies=[Depends(require_scope(SCOPE_PROOF_READ))],
)
def verify_proof(
    consent_id: str,
    digest: str = Query(..., min_length=1, max_length=128),
    services: Services = Depends(get_services),
):
    """Check a fingerprint printed on a proof document against the stored record."""
    return DigestVerificationResponse(
        consent_id=consent_id,
        valid=services.proofs.verify(consent_id, digest),
    )

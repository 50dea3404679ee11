"""
Consent recording service.

Validates a consent event from the banner client, anonymizes the caller
and appends exactly one immutable ConsentRecord per call. There is no
server-side deduplication: the client suppresses repeat submissions,
the server records every well-formed call it receives.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from core.exceptions import InvalidPayload
from core.sanitize import sanitize_text_field
from models.consent import (
    CONSENT_ID_MAX_LENGTH,
    STATUS_MAX_LENGTH,
    ClientContext,
    ConsentReceipt,
    ConsentRecord,
)
from services.anonymizer import anonymize_ip

logger = logging.getLogger(__name__)

USER_AGENT_MAX_LENGTH = 512
DOMAIN_MAX_LENGTH = 255
CATEGORY_NAME_MAX_LENGTH = 64


class ConsentRecorder:
    """Turns validated consent payloads into stored records."""

    def __init__(self, consent_repository):
        """
        Args:
            consent_repository: Repository with an insert(record) method
        """
        self.consents = consent_repository

    def record_consent(self, payload: Any, client: ClientContext) -> ConsentReceipt:
        """
        Validate and store one consent event.

        Args:
            payload: Decoded JSON body: status, optional categories, optional consentId
            client: Caller address, user agent and requested host

        Returns:
            ConsentReceipt with the consent id used

        Raises:
            InvalidPayload: The payload is malformed; nothing was stored
            StorageFailure: The write failed; the event was not recorded
        """
        if not isinstance(payload, Mapping):
            raise InvalidPayload("Consent payload must be a JSON object")

        status = self._clean_status(payload.get("status"))
        categories = self._clean_categories(payload.get("categories"))
        consent_id = self._resolve_consent_id(payload.get("consentId"))

        record = ConsentRecord(
            consent_id=consent_id,
            domain=sanitize_text_field(client.host, DOMAIN_MAX_LENGTH),
            status=status,
            categories=categories,
            ip=anonymize_ip(client.ip),
            user_agent=sanitize_text_field(client.user_agent, USER_AGENT_MAX_LENGTH),
            country="",
            created_at=datetime.now(timezone.utc),
        )

        stored = self.consents.insert(record)
        logger.info(f"Recorded consent {stored.consent_id} (status={stored.status}, id={stored.id})")
        return ConsentReceipt(logged=True, consent_id=stored.consent_id)

    @staticmethod
    def _clean_status(raw: Any) -> str:
        if not isinstance(raw, str) or not raw.strip():
            raise InvalidPayload("Invalid payload: status is required", details={"field": "status"})
        status = sanitize_text_field(raw)
        if not status:
            raise InvalidPayload("Invalid payload: status is required", details={"field": "status"})
        if len(status) > STATUS_MAX_LENGTH:
            raise InvalidPayload(
                f"Invalid payload: status exceeds {STATUS_MAX_LENGTH} characters",
                details={"field": "status"}
            )
        return status

    @staticmethod
    def _clean_categories(raw: Any) -> Dict[str, bool]:
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise InvalidPayload(
                "Invalid payload: categories must be an object",
                details={"field": "categories"}
            )
        categories = {}
        for name, value in raw.items():
            key = sanitize_text_field(str(name), CATEGORY_NAME_MAX_LENGTH)
            if not key:
                continue
            if isinstance(value, bool):
                categories[key] = value
            elif isinstance(value, int) and value in (0, 1):
                categories[key] = value == 1
            else:
                raise InvalidPayload(
                    f"Invalid payload: category '{key}' must be true or false",
                    details={"field": "categories"}
                )
        return categories

    @staticmethod
    def _resolve_consent_id(raw: Any) -> str:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return str(uuid.uuid4())
        if isinstance(raw, int) and not isinstance(raw, bool):
            raw = str(raw)
        if not isinstance(raw, str):
            raise InvalidPayload(
                "Invalid payload: consentId must be a string or integer",
                details={"field": "consentId"}
            )
        consent_id = sanitize_text_field(raw)
        if not consent_id:
            return str(uuid.uuid4())
        if len(consent_id) > CONSENT_ID_MAX_LENGTH:
            raise InvalidPayload(
                f"Invalid payload: consentId exceeds {CONSENT_ID_MAX_LENGTH} characters",
                details={"field": "consentId"}
            )
        return consent_id

"""
Proof-of-consent document generation.

A proof binds a stored consent record to a keyed SHA-256 fingerprint:

    digest = sha256(canonical_json(record) + secret_key)

canonical_json serializes every stored field with sorted keys and compact
separators, so the digest changes when any field changes and cannot be
recomputed without the server's secret. The document content is built
once as a ProofDocument and rendered either as PDF (reportlab) or as
HTML; both renderers walk the same sections, so they always carry the
same fields and the same digest. Documents contain no generation time:
the same record and secret always produce the same output.
"""

import hashlib
import hmac
import html
import io
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from xml.sax.saxutils import escape as xml_escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.exceptions import InvalidPayload, NotFound
from models.consent import ConsentRecord

logger = logging.getLogger(__name__)

PROOF_TITLE = "GDPR Consent Record & Proof of Compliance"
NOT_AVAILABLE = "Not Available"
NO_CATEGORY_DATA = "No category-specific consent data available."
DOCUMENT_ID_LENGTH = 12

LEGAL_BASIS = "Article 6(1)(a) GDPR - Consent of the data subject"
COOKIE_LAW = "ePrivacy Directive (2002/58/EC) - Prior Consent Required"

SUPPORTED_FORMATS = ("pdf", "html")
MEDIA_TYPES = {"pdf": "application/pdf", "html": "text/html; charset=utf-8"}


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def canonical_json(record: ConsentRecord) -> bytes:
    """Stable byte serialization of every stored field of a record."""
    payload = {
        "id": record.id,
        "consent_id": record.consent_id,
        "domain": record.domain,
        "status": record.status,
        "categories": dict(sorted(record.categories.items())),
        "ip": record.ip,
        "user_agent": record.user_agent,
        "country": record.country,
        "created_at": _utc(record.created_at).isoformat(),
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_digest(record: ConsentRecord, secret: str) -> str:
    """Keyed SHA-256 fingerprint of a record (hex)."""
    return hashlib.sha256(canonical_json(record) + secret.encode("utf-8")).hexdigest()


def verify_digest(record: ConsentRecord, digest: str, secret: str) -> bool:
    """Constant-time check of a fingerprint against a record."""
    return hmac.compare_digest(compute_digest(record, secret), (digest or "").strip().lower())


@dataclass
class ProofSection:
    title: str
    rows: List[Tuple[str, str]] = field(default_factory=list)
    note: Optional[str] = None


@dataclass
class ProofDocument:
    """Renderer-independent content of one proof."""
    site_name: str
    title: str
    notice: str
    sections: List[ProofSection]
    footer: str
    consent_id: str
    digest: str

    @property
    def document_id(self) -> str:
        return self.digest[:DOCUMENT_ID_LENGTH].upper()


@dataclass
class ProofArtifact:
    content: bytes
    media_type: str
    filename: str
    digest: str
    format: str


def build_proof_document(record: ConsentRecord, digest: str, proof_config, site_name: str) -> ProofDocument:
    """Assemble the sections shared by every renderer."""
    created = _utc(record.created_at).strftime("%Y-%m-%d %H:%M:%S UTC")

    category_rows = [
        (name.replace("_", " ").capitalize(), "Accepted" if accepted else "Rejected")
        for name, accepted in sorted(record.categories.items())
    ]

    sections = [
        ProofSection("Consent Information", [
            ("Consent ID", record.consent_id),
            ("Website Domain", record.domain or NOT_AVAILABLE),
            ("Consent Status", record.status.upper()),
            ("Date & Time (UTC)", created),
            ("IP Address (Anonymized)", record.ip or NOT_AVAILABLE),
            ("Country", record.country or NOT_AVAILABLE),
        ]),
        ProofSection(
            "Cookie Categories Consent",
            category_rows,
            note=None if category_rows else NO_CATEGORY_DATA,
        ),
        ProofSection("Technical Details", [
            ("User Agent", record.user_agent or NOT_AVAILABLE),
            ("Data Collection Method", proof_config.collection_method),
            ("Consent Mechanism", proof_config.consent_mechanism),
        ]),
        ProofSection("Legal Basis & Compliance", [
            ("Legal Basis", LEGAL_BASIS),
            ("Cookie Law", COOKIE_LAW),
            ("Retention Period", proof_config.retention_statement),
            ("Data Controller", proof_config.data_controller or site_name),
        ]),
        ProofSection("Record Verification", [
            ("Digital Fingerprint (SHA-256)", digest),
            ("Document ID", digest[:DOCUMENT_ID_LENGTH].upper()),
        ]),
    ]

    return ProofDocument(
        site_name=site_name,
        title=PROOF_TITLE,
        notice=(
            "This document is a record of a cookie consent decision kept as proof of consent "
            "under the General Data Protection Regulation (GDPR) and the ePrivacy Directive. "
            "It reproduces the stored consent record exactly as captured."
        ),
        sections=sections,
        footer=(
            f"Certificate of Authenticity: generated from the consent log of {site_name}. "
            "The digital fingerprint changes if any field of this record is altered and can "
            "only be recomputed by the operator holding the signing key."
        ),
        consent_id=record.consent_id,
        digest=digest,
    )


class PdfProofRenderer:
    """Renders a ProofDocument to PDF with reportlab."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name='ProofSite',
            parent=self.styles['Heading1'],
            fontSize=20,
            textColor=colors.HexColor('#1a1a1a'),
            alignment=TA_CENTER,
            spaceAfter=6
        ))
        self.styles.add(ParagraphStyle(
            name='ProofTitle',
            parent=self.styles['Heading2'],
            fontSize=14,
            textColor=colors.HexColor('#333333'),
            alignment=TA_CENTER,
            spaceAfter=18
        ))
        self.styles.add(ParagraphStyle(
            name='ProofSection',
            parent=self.styles['Heading3'],
            fontSize=12,
            textColor=colors.HexColor('#0b5394'),
            spaceBefore=12,
            spaceAfter=6
        ))
        self.styles.add(ParagraphStyle(
            name='ProofCell',
            parent=self.styles['Normal'],
            fontSize=9,
            leading=11
        ))
        self.styles.add(ParagraphStyle(
            name='ProofFooter',
            parent=self.styles['Italic'],
            fontSize=8,
            textColor=colors.HexColor('#555555'),
            spaceBefore=18
        ))

    def _cell(self, text: str) -> Paragraph:
        return Paragraph(xml_escape(text), self.styles['ProofCell'])

    def render(self, document: ProofDocument) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=54,
            leftMargin=54,
            topMargin=54,
            bottomMargin=36,
            title=f"Consent Record {document.consent_id}",
            author=document.site_name,
            invariant=1,
        )

        story = [
            Paragraph(xml_escape(document.site_name), self.styles['ProofSite']),
            Paragraph(xml_escape(document.title), self.styles['ProofTitle']),
            Paragraph(xml_escape(document.notice), self.styles['Normal']),
            Spacer(1, 12),
        ]

        for section in document.sections:
            story.append(Paragraph(xml_escape(section.title), self.styles['ProofSection']))
            if section.note:
                story.append(Paragraph(xml_escape(section.note), self.styles['Normal']))
            if section.rows:
                table = Table(
                    [[self._cell(label), self._cell(value)] for label, value in section.rows],
                    colWidths=[2.0 * inch, 4.6 * inch]
                )
                table.setStyle(TableStyle([
                    ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#f0f0f0')),
                    ('VALIGN', (0, 0), (-1, -1), 'TOP'),
                    ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
                    ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
                    ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
                ]))
                story.append(table)

        story.append(Paragraph(xml_escape(document.footer), self.styles['ProofFooter']))

        doc.build(story)
        return buffer.getvalue()


class HtmlProofRenderer:
    """Renders a ProofDocument as a standalone HTML page."""

    def render(self, document: ProofDocument) -> bytes:
        e = html.escape
        parts = []
        for section in document.sections:
            parts.append(f'<h2>{e(section.title)}</h2>')
            if section.note:
                parts.append(f'<p class="note">{e(section.note)}</p>')
            if section.rows:
                rows = "".join(
                    f'<tr><th>{e(label)}</th><td>{e(value)}</td></tr>'
                    for label, value in section.rows
                )
                parts.append(f'<table>{rows}</table>')

        page = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Consent Record {e(document.consent_id)}</title>
    <style>
        body {{ font-family: Helvetica, Arial, sans-serif; max-width: 800px; margin: 40px auto; color: #1a1a1a; }}
        h1 {{ text-align: center; margin-bottom: 4px; }}
        .subtitle {{ text-align: center; color: #333; font-size: 18px; margin-bottom: 24px; }}
        h2 {{ color: #0b5394; font-size: 16px; margin-top: 24px; }}
        table {{ width: 100%; border-collapse: collapse; }}
        th, td {{ border: 1px solid #999; padding: 6px; text-align: left; vertical-align: top; font-size: 13px; }}
        th {{ background: #f0f0f0; width: 30%; }}
        td {{ word-break: break-all; }}
        .footer {{ margin-top: 32px; font-size: 11px; font-style: italic; color: #555; }}
    </style>
</head>
<body>
    <h1>{e(document.site_name)}</h1>
    <div class="subtitle">{e(document.title)}</div>
    <p class="notice">{e(document.notice)}</p>
    {"".join(parts)}
    <p class="footer">{e(document.footer)}</p>
</body>
</html>
"""
        return page.encode("utf-8")


def proof_filename(consent_id: str, fmt: str) -> str:
    safe_id = re.sub(r'[^A-Za-z0-9._-]', '_', consent_id)
    return f"consent-log-{safe_id}.{fmt}"


class ProofGenerator:
    """Looks up a consent record and renders its proof document."""

    def __init__(self, consent_repository, config):
        """
        Args:
            consent_repository: Repository with find_by_consent_id()
            config: Root Config (auth.proof_secret_key, proof, site_name)
        """
        self.consents = consent_repository
        self.secret = config.auth.proof_secret_key
        self.proof_config = config.proof
        self.site_name = config.site_name
        self.pdf_renderer = PdfProofRenderer()
        self.html_renderer = HtmlProofRenderer()

    def get_record(self, consent_id: str) -> ConsentRecord:
        """
        The record a proof is issued for: the first capture of the id.

        Raises:
            NotFound: No record has this consent id
        """
        records = self.consents.find_by_consent_id(consent_id)
        if not records:
            raise NotFound("Consent log", consent_id)
        return records[0]

    def build_document(self, consent_id: str) -> ProofDocument:
        record = self.get_record(consent_id)
        digest = compute_digest(record, self.secret)
        return build_proof_document(record, digest, self.proof_config, self.site_name)

    def generate_proof(self, consent_id: str, fmt: Optional[str] = None) -> ProofArtifact:
        """
        Render the proof document for a consent id.

        Args:
            consent_id: Consent id to prove
            fmt: "pdf" or "html" (defaults to PROOF_DEFAULT_FORMAT)

        Returns:
            ProofArtifact with bytes, media type, download filename and digest

        Raises:
            NotFound: No record has this consent id
            InvalidPayload: Unsupported format
        """
        fmt = (fmt or self.proof_config.default_format).lower()
        if fmt not in SUPPORTED_FORMATS:
            raise InvalidPayload(
                f"Unsupported proof format: {fmt}",
                details={"supported": list(SUPPORTED_FORMATS)}
            )

        document = self.build_document(consent_id)

        content = None
        if fmt == "pdf":
            try:
                content = self.pdf_renderer.render(document)
            except Exception:
                logger.warning(
                    f"PDF rendering failed for consent {consent_id}, falling back to HTML",
                    exc_info=True
                )
                fmt = "html"
        if content is None:
            content = self.html_renderer.render(document)

        logger.info(f"Generated {fmt} proof for consent {consent_id} (document {document.document_id})")
        return ProofArtifact(
            content=content,
            media_type=MEDIA_TYPES[fmt],
            filename=proof_filename(consent_id, fmt),
            digest=document.digest,
            format=fmt,
        )

    def verify(self, consent_id: str, digest: str) -> bool:
        """Whether a fingerprint matches the stored record."""
        return verify_digest(self.get_record(consent_id), digest, self.secret)

"""
Tests for proof-of-consent documents and record fingerprints.
"""

import hashlib
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from core.exceptions import InvalidPayload, NotFound
from services.proof_generator import (
    NO_CATEGORY_DATA,
    ProofGenerator,
    canonical_json,
    compute_digest,
    proof_filename,
    verify_digest,
)

SECRET = "proof-secret-for-tests"


@pytest.fixture
def generator(storage, config):
    return ProofGenerator(storage.consents, config)


@pytest.fixture
def stored(storage, make_record):
    return storage.consents.insert(make_record("proof-1"))


class TestDigest:

    def test_keyed_sha256_of_canonical_json(self, stored):
        expected = hashlib.sha256(canonical_json(stored) + SECRET.encode("utf-8")).hexdigest()
        assert compute_digest(stored, SECRET) == expected

    def test_canonical_json_is_stable(self, make_record):
        a = make_record(categories={"b": True, "a": False})
        b = make_record(categories={"a": False, "b": True})
        assert canonical_json(a) == canonical_json(b)
        assert b'"consent_id":"consent-1"' in canonical_json(a)

    def test_any_field_change_changes_digest(self, stored):
        original = compute_digest(stored, SECRET)
        for update in ({"status": "rejected"}, {"ip": "203.0.113.1"}, {"categories": {}},
                       {"created_at": datetime(2024, 3, 1, 12, 31, tzinfo=timezone.utc)}):
            assert compute_digest(stored.model_copy(update=update), SECRET) != original

    def test_secret_changes_digest(self, stored):
        assert compute_digest(stored, SECRET) != compute_digest(stored, "other-secret")

    def test_verify(self, stored):
        digest = compute_digest(stored, SECRET)
        assert verify_digest(stored, digest, SECRET) is True
        assert verify_digest(stored, digest.upper(), SECRET) is True
        assert verify_digest(stored, "0" * 64, SECRET) is False
        assert verify_digest(stored, "", SECRET) is False


class TestProofDocument:

    def test_sections_and_fields(self, generator, stored):
        document = generator.build_document("proof-1")
        sections = {s.title: dict(s.rows) for s in document.sections}

        info = sections["Consent Information"]
        assert info["Consent ID"] == "proof-1"
        assert info["Consent Status"] == "ACCEPTED"
        assert info["Date & Time (UTC)"] == "2024-03-01 12:30:00 UTC"
        assert info["IP Address (Anonymized)"] == "203.0.113.0"
        assert info["Country"] == "Not Available"

        assert sections["Cookie Categories Consent"] == {
            "Advertisement": "Rejected",
            "Analytics": "Accepted",
            "Necessary": "Accepted",
        }
        assert sections["Legal Basis & Compliance"]["Data Controller"] == "Example Shop Ltd"

        digest = compute_digest(stored, SECRET)
        assert sections["Record Verification"]["Digital Fingerprint (SHA-256)"] == digest
        assert sections["Record Verification"]["Document ID"] == digest[:12].upper()
        assert document.document_id == digest[:12].upper()

    def test_no_categories_note(self, generator, storage, make_record):
        storage.consents.insert(make_record("bare", categories={}))

        document = generator.build_document("bare")
        section = next(s for s in document.sections if s.title == "Cookie Categories Consent")

        assert section.rows == []
        assert section.note == NO_CATEGORY_DATA

    def test_first_capture_is_proved(self, generator, storage, make_record):
        storage.consents.insert(make_record("dup", status="accepted"))
        storage.consents.insert(make_record(
            "dup", status="rejected", created_at=datetime(2024, 4, 1, tzinfo=timezone.utc),
        ))

        document = generator.build_document("dup")
        info = dict(document.sections[0].rows)

        assert info["Consent Status"] == "ACCEPTED"


class TestGenerateProof:

    def test_pdf(self, generator, stored):
        artifact = generator.generate_proof("proof-1", "pdf")

        assert artifact.content.startswith(b"%PDF")
        assert artifact.media_type == "application/pdf"
        assert artifact.filename == "consent-log-proof-1.pdf"
        assert artifact.digest == compute_digest(stored, SECRET)

    def test_pdf_is_deterministic(self, generator, stored):
        first = generator.generate_proof("proof-1", "pdf").content
        second = generator.generate_proof("proof-1", "pdf").content
        assert first == second

    def test_html_carries_same_fields(self, generator, stored):
        artifact = generator.generate_proof("proof-1", "html")
        page = artifact.content.decode("utf-8")

        assert artifact.media_type.startswith("text/html")
        assert artifact.filename == "consent-log-proof-1.html"
        assert "GDPR Consent Record &amp; Proof of Compliance" in page
        assert artifact.digest in page
        assert "203.0.113.0" in page

    def test_html_escapes_stored_values(self, generator, storage, make_record):
        storage.consents.insert(make_record("xss", user_agent='<script>alert("x")</script>'))

        page = generator.generate_proof("xss", "html").content.decode("utf-8")

        assert "<script>" not in page
        assert "&lt;script&gt;" in page

    def test_default_format_from_config(self, generator, stored):
        assert generator.generate_proof("proof-1").format == "pdf"

    def test_falls_back_to_html_when_pdf_fails(self, generator, stored):
        with patch.object(generator.pdf_renderer, "render", side_effect=RuntimeError("font missing")):
            artifact = generator.generate_proof("proof-1", "pdf")

        assert artifact.format == "html"
        assert artifact.filename.endswith(".html")

    def test_unknown_format(self, generator, stored):
        with pytest.raises(InvalidPayload):
            generator.generate_proof("proof-1", "docx")

    def test_unknown_consent_id(self, generator):
        with pytest.raises(NotFound):
            generator.generate_proof("missing", "pdf")

    def test_verify(self, generator, stored):
        assert generator.verify("proof-1", compute_digest(stored, SECRET)) is True
        assert generator.verify("proof-1", "deadbeef") is False


class TestFilename:

    def test_unsafe_characters_replaced(self):
        assert proof_filename('a/b"c d', "pdf") == "consent-log-a_b_c_d.pdf"

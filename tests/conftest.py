"""
Shared fixtures.

Every test runs against the in-memory storage backend; nothing here
needs a database, SMTP server or network access.
"""

import os
from datetime import datetime, timezone

import pytest

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ.setdefault('PROOF_SECRET_KEY', 'test-proof-secret-key')
os.environ.setdefault('ADMIN_API_KEY', 'test-admin-key')

from core.config import (
    APIConfig,
    AuthConfig,
    Config,
    DatabaseConfig,
    MonitoringConfig,
    NotificationConfig,
    ProofConfig,
    RetentionConfig,
    ScanConfig,
)
from database.storage import MemoryStorage
from models.consent import ConsentRecord

ADMIN_KEY = "admin-key-for-tests-0123456789abcdef"
AUDITOR_KEY = "auditor-key-for-tests-0123456789abcd"
PROOF_SECRET = "proof-secret-for-tests"


@pytest.fixture
def config(tmp_path):
    """A complete Config that reads nothing from the environment."""
    return Config(
        environment='test',
        site_name='Example Shop',
        database=DatabaseConfig(url='memory://'),
        api=APIConfig(),
        auth=AuthConfig(
            proof_secret_key=PROOF_SECRET,
            admin_api_key=ADMIN_KEY,
            auditor_api_key=AUDITOR_KEY,
        ),
        scan=ScanConfig(
            site_url='https://shop.example.com',
            theme_dir=str(tmp_path / 'theme'),
            plugins_dir=str(tmp_path / 'plugins'),
            script_plugins=['google-analytics'],
            active_components=[],
            enabled=True,
            scan_time='02:00',
            email_notifications=False,
            auto_categorize=True,
            banner_integration=False,
        ),
        proof=ProofConfig(default_format='pdf', data_controller='Example Shop Ltd'),
        retention=RetentionConfig(enabled=True, consent_days=365, cleanup_time='03:00'),
        notification=NotificationConfig(admin_email=None, smtp_host=None),
        monitoring=MonitoringConfig(log_level='WARNING', log_format='console', log_to_file=False),
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def make_record():
    """Factory for stored-shape ConsentRecords."""
    def _make(consent_id="consent-1", **overrides):
        values = dict(
            consent_id=consent_id,
            domain="shop.example.com",
            status="accepted",
            categories={"necessary": True, "analytics": True, "advertisement": False},
            ip="203.0.113.0",
            user_agent="Mozilla/5.0 (X11; Linux x86_64)",
            country="",
            created_at=datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc),
        )
        values.update(overrides)
        return ConsentRecord(**values)
    return _make

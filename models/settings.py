"""
Runtime scanner settings.
"""

from pydantic import BaseModel, Field, field_validator

from core.config import ScanConfig, validate_time_of_day

SCANNER_SETTINGS_KEY = "scanner_settings"


class ScannerSettings(BaseModel):
    """Scanner options editable at runtime through the admin API."""
    scan_enabled: bool = Field(default=True, description="Run the daily scan")
    scan_time: str = Field(default="02:00", description="Daily scan time (HH:MM, server time)")
    email_notifications: bool = Field(default=True)
    auto_categorize: bool = Field(default=True)
    banner_integration: bool = Field(default=False)

    @field_validator('scan_time')
    @classmethod
    def validate_scan_time(cls, v):
        return validate_time_of_day(v)

    @classmethod
    def from_config(cls, scan: ScanConfig) -> "ScannerSettings":
        """Defaults taken from configuration."""
        return cls(
            scan_enabled=scan.enabled,
            scan_time=scan.scan_time,
            email_notifications=scan.email_notifications,
            auto_categorize=scan.auto_categorize,
            banner_integration=scan.banner_integration,
        )

    @property
    def hour(self) -> int:
        return int(self.scan_time.split(':')[0])

    @property
    def minute(self) -> int:
        return int(self.scan_time.split(':')[1])

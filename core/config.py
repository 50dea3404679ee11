"""
Configuration management system with environment variable loading and validation.
"""

import re
import yaml
from pathlib import Path
import os
from typing import Annotated, Optional, Dict, Any, List
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator
import logging

logger = logging.getLogger(__name__)

_TIME_OF_DAY = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')

DEFAULT_SCAN_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'
DEFAULT_SCRIPT_PLUGINS = ['google-analytics', 'facebook-pixel', 'mailchimp', 'contact-form-7']


def validate_time_of_day(value: str) -> str:
    """Validate an "HH:MM" 24h time string."""
    value = (value or '').strip()
    if not _TIME_OF_DAY.match(value):
        raise ValueError(f"Invalid time of day: {value!r}. Expected HH:MM (24h)")
    return value


def _split_csv(v):
    if v is None:
        return []
    if isinstance(v, str):
        return [item.strip() for item in v.split(',') if item.strip()]
    return list(v)


class DatabaseConfig(BaseSettings):
    """Database configuration."""
    model_config = SettingsConfigDict(env_prefix='DATABASE_', extra='ignore')

    # postgresql://... or memory:// for the in-process store
    url: str = Field(default='memory://')
    min_connections: int = Field(default=1, ge=1, le=50)
    max_connections: int = Field(default=10, ge=1, le=100)


class APIConfig(BaseSettings):
    """API server configuration."""
    model_config = SettingsConfigDict(env_prefix='API_', extra='ignore')

    host: str = Field(default='0.0.0.0')
    port: int = Field(default=8000, ge=1, le=65535)
    workers: int = Field(default=1, ge=1, le=32)
    reload: bool = Field(default=False)
    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=list)
    trust_proxy_headers: bool = Field(default=False)

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        return _split_csv(v)


class AuthConfig(BaseSettings):
    """Authentication and proof signing configuration."""
    model_config = SettingsConfigDict(env_prefix='', extra='ignore')

    proof_secret_key: str = Field(..., min_length=1)
    admin_api_key: str = Field(..., min_length=1)
    auditor_api_key: Optional[str] = Field(None)
    api_key_salt: str = Field(default='consent-logger')


class ScanConfig(BaseSettings):
    """Cookie discovery configuration and scanner setting defaults."""
    model_config = SettingsConfigDict(env_prefix='SCAN_', extra='ignore')

    site_url: str = Field(default='http://localhost')
    fetch_timeout: int = Field(default=30, ge=1, le=120)
    user_agent: str = Field(default=DEFAULT_SCAN_USER_AGENT)

    theme_dir: Optional[str] = Field(None)
    plugins_dir: Optional[str] = Field(None)
    script_plugins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_SCRIPT_PLUGINS))
    theme_file_limit: int = Field(default=20, ge=0, le=500)
    plugin_file_limit: int = Field(default=5, ge=0, le=100)
    active_components: Annotated[List[str], NoDecode] = Field(default_factory=list)

    enabled: bool = Field(default=True)
    scan_time: str = Field(default='02:00')
    email_notifications: bool = Field(default=True)
    auto_categorize: bool = Field(default=True)
    banner_integration: bool = Field(default=False)

    @field_validator('script_plugins', 'active_components', mode='before')
    @classmethod
    def parse_lists(cls, v):
        """Accept comma-separated strings as well as lists."""
        return _split_csv(v)

    @field_validator('scan_time')
    @classmethod
    def validate_scan_time(cls, v):
        return validate_time_of_day(v)


class ProofConfig(BaseSettings):
    """Proof document configuration."""
    model_config = SettingsConfigDict(env_prefix='PROOF_', extra='ignore')

    default_format: str = Field(default='pdf')
    data_controller: str = Field(default='')
    retention_statement: str = Field(default='Minimum 12 months from consent date')
    collection_method: str = Field(default='Cookie consent banner (JavaScript client)')
    consent_mechanism: str = Field(default='Explicit User Action (Click/Tap)')

    @field_validator('default_format')
    @classmethod
    def validate_default_format(cls, v):
        if v.lower() not in {'pdf', 'html'}:
            raise ValueError(f"Invalid proof format: {v}. Must be 'pdf' or 'html'")
        return v.lower()


class RetentionConfig(BaseSettings):
    """Consent record retention configuration."""
    model_config = SettingsConfigDict(env_prefix='RETENTION_', extra='ignore')

    enabled: bool = Field(default=True)
    # GDPR accountability: keep at least 12 months
    consent_days: int = Field(default=365, ge=365)
    cleanup_time: str = Field(default='03:00')

    @field_validator('cleanup_time')
    @classmethod
    def validate_cleanup_time(cls, v):
        return validate_time_of_day(v)


class NotificationConfig(BaseSettings):
    """Notification configuration."""
    model_config = SettingsConfigDict(env_prefix='', extra='ignore')

    smtp_host: Optional[str] = Field(None)
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_user: Optional[str] = Field(None)
    smtp_password: Optional[str] = Field(None)
    smtp_from_email: Optional[str] = Field(None)
    smtp_use_tls: bool = Field(default=True)
    smtp_timeout: int = Field(default=30, ge=1, le=120)
    admin_email: Optional[str] = Field(None)


class MonitoringConfig(BaseSettings):
    """Logging configuration."""
    model_config = SettingsConfigDict(env_prefix='', extra='ignore')

    log_level: str = Field(default='INFO')
    log_format: str = Field(default='json')
    log_dir: str = Field(default='logs')
    log_to_file: bool = Field(default=False)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in {'json', 'console'}:
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v.lower()


class Config(BaseSettings):
    """Main configuration class."""
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # Environment
    environment: str = Field(default='development')
    debug: bool = Field(default=False)
    site_name: str = Field(default='My Website')

    # Sub-configurations
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    proof: ProofConfig = Field(default_factory=ProofConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        """Validate environment."""
        valid_envs = {'development', 'staging', 'production', 'test'}
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v.lower()

    def validate_config(self) -> List[str]:
        """
        Validate configuration and return list of warnings/errors.

        Returns:
            List of validation messages
        """
        messages = []

        if self.environment == 'production':
            if self.debug:
                messages.append("WARNING: Debug mode enabled in production")

            if len(self.auth.proof_secret_key) < 32:
                messages.append("ERROR: Proof secret key must be at least 32 characters in production")

            if len(self.auth.admin_api_key) < 32:
                messages.append("ERROR: Admin API key must be at least 32 characters in production")

            if self.database.url.startswith('memory://'):
                messages.append("WARNING: In-memory storage configured in production, consent records will not persist")

        if self.notification.smtp_user and not self.notification.smtp_host:
            messages.append("WARNING: SMTP credentials configured but SMTP host missing")

        if self.scan.email_notifications and not self.notification.admin_email:
            messages.append("WARNING: Email notifications enabled but ADMIN_EMAIL not set")

        if self.database.min_connections > self.database.max_connections:
            messages.append("WARNING: Database min_connections should be <= max_connections")

        return messages


class YAMLConfigLoader:
    """Load configuration from YAML files."""

    @staticmethod
    def load_yaml_config(config_path: Path) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            Configuration dictionary
        """
        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}")
            return {}

        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f)
                logger.info(f"Loaded configuration from {config_path}")
                return config or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")
            return {}


_SECTIONS = {
    'database': DatabaseConfig,
    'api': APIConfig,
    'auth': AuthConfig,
    'scan': ScanConfig,
    'proof': ProofConfig,
    'retention': RetentionConfig,
    'notification': NotificationConfig,
    'monitoring': MonitoringConfig,
}


def build_config(yaml_config: Optional[Dict[str, Any]] = None) -> Config:
    """
    Build a Config from environment variables layered over YAML values.

    Environment variables take precedence: a YAML key is only used when
    the matching variable is not set.

    Args:
        yaml_config: Parsed YAML configuration (optional)

    Returns:
        Config instance
    """
    yaml_config = yaml_config or {}
    env_keys = {key.upper() for key in os.environ}
    kwargs: Dict[str, Any] = {}

    for name, section_cls in _SECTIONS.items():
        values = yaml_config.get(name)
        if not isinstance(values, dict):
            continue
        prefix = section_cls.model_config.get('env_prefix', '')
        kwargs[name] = section_cls(**{
            key: value for key, value in values.items()
            if key in section_cls.model_fields and f"{prefix}{key}".upper() not in env_keys
        })

    for key in ('environment', 'debug', 'site_name'):
        if key in yaml_config and key.upper() not in env_keys:
            kwargs[key] = yaml_config[key]

    return Config(**kwargs)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        raise RuntimeError("Configuration not initialized. Call init_config() first.")
    return _config


def init_config(
    env_file: Optional[str] = None,
    yaml_config_path: Optional[Path] = None
) -> Config:
    """
    Initialize the global configuration instance.

    Args:
        env_file: Path to .env file (optional)
        yaml_config_path: Path to YAML config file (optional)

    Returns:
        Initialized Config instance
    """
    global _config

    # .env values become process environment, so every sub-config sees them
    load_dotenv(env_file or '.env')

    yaml_config = {}
    if yaml_config_path:
        yaml_config = YAMLConfigLoader.load_yaml_config(Path(yaml_config_path))

    config = build_config(yaml_config)

    validation_messages = config.validate_config()
    for msg in validation_messages:
        if msg.startswith('ERROR'):
            logger.error(msg)
            raise ValueError(msg)
        else:
            logger.warning(msg)

    _config = config
    logger.info(f"Configuration initialized for environment: {_config.environment}")
    return _config


def set_config(config: Optional[Config]) -> None:
    """Replace the global configuration (used by the app factory and tests)."""
    global _config
    _config = config


def reload_config(
    env_file: Optional[str] = None,
    yaml_config_path: Optional[Path] = None
) -> Config:
    """Reload configuration (for hot reload support)."""
    global _config
    _config = None
    return init_config(env_file=env_file, yaml_config_path=yaml_config_path)

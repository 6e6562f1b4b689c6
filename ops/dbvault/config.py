"""
Configuration management for dbvault.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets (BACKUP_KEY, store credentials) are optional at load time;
      their absence is reported as ConfigurationError by the first
      operation that needs them
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep secret fields out of repr (field(repr=False))
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory holding the live SQLite database
        db_filename: File name of the live database
        temp_dir: Directory for snapshot temp files (system default if None)
    """

    data_dir: str = "./store"
    db_filename: str = "messages.db"
    temp_dir: str | None = None

    @property
    def db_path(self) -> Path:
        """Absolute path of the live database."""
        return Path(self.data_dir) / self.db_filename

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "./store"),
            db_filename=os.getenv("DB_FILENAME", "messages.db"),
            temp_dir=os.getenv("BACKUP_TEMP_DIR"),
        )


@dataclass(frozen=True)
class EncryptionConfig:
    """Artifact encryption configuration.

    Attributes:
        backup_key: Operator-supplied secret the AES key is derived from
    """

    backup_key: str | None = field(default=None, repr=False)

    def require_key(self) -> str:
        """Return the secret or raise ConfigurationError if absent."""
        if not self.backup_key:
            raise ConfigurationError("BACKUP_KEY not configured", setting="BACKUP_KEY")
        return self.backup_key

    @classmethod
    def from_env(cls) -> EncryptionConfig:
        """Load configuration from environment variables."""
        return cls(backup_key=os.getenv("BACKUP_KEY"))


@dataclass(frozen=True)
class StoreCredentials:
    """Remote store access credential.

    A closed set of optional fields; require() performs the explicit
    presence check before any client is created.

    Attributes:
        access_key_id: Access key ID
        secret_access_key: Secret access key
        session_token: Optional session token for temporary credentials
    """

    access_key_id: str | None = field(default=None, repr=False)
    secret_access_key: str | None = field(default=None, repr=False)
    session_token: str | None = field(default=None, repr=False)

    @property
    def is_configured(self) -> bool:
        return bool(self.access_key_id) and bool(self.secret_access_key)

    def require(self) -> None:
        """Raise ConfigurationError naming the first missing field."""
        if not self.access_key_id:
            raise ConfigurationError(
                "AWS_ACCESS_KEY_ID not configured", setting="AWS_ACCESS_KEY_ID"
            )
        if not self.secret_access_key:
            raise ConfigurationError(
                "AWS_SECRET_ACCESS_KEY not configured", setting="AWS_SECRET_ACCESS_KEY"
            )

    @classmethod
    def from_env(cls) -> StoreCredentials:
        """Load configuration from environment variables."""
        return cls(
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            session_token=os.getenv("AWS_SESSION_TOKEN"),
        )


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for backup artifacts.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        backup_prefix: Prefix for all backup keys
        credentials: Access credential for the bucket
    """

    bucket: str = "dbvault-backups"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    backup_prefix: str = "dbvault-backup"
    credentials: StoreCredentials = field(default_factory=StoreCredentials)

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", "dbvault-backups"),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            backup_prefix=os.getenv("BACKUP_PREFIX", "dbvault-backup"),
            credentials=StoreCredentials.from_env(),
        )


@dataclass(frozen=True)
class RetentionConfig:
    """Tiered retention windows.

    Attributes:
        daily_days: Every artifact younger than this is kept
        weekly_days: Weekly-anchor artifacts younger than this are kept
        monthly_days: Monthly-anchor artifacts younger than this are kept
        weekly_anchor_weekday: Weekday of weekly artifacts (Monday=0, Sunday=6)
        monthly_anchor_day: Day of month of monthly artifacts
    """

    daily_days: int = 7
    weekly_days: int = 28
    monthly_days: int = 365
    weekly_anchor_weekday: int = 6
    monthly_anchor_day: int = 1

    @classmethod
    def from_env(cls) -> RetentionConfig:
        """Load configuration from environment variables."""
        return cls(
            daily_days=int(os.getenv("RETENTION_DAILY_DAYS", "7")),
            weekly_days=int(os.getenv("RETENTION_WEEKLY_DAYS", "28")),
            monthly_days=int(os.getenv("RETENTION_MONTHLY_DAYS", "365")),
        )


@dataclass(frozen=True)
class SchedulerConfig:
    """Backup scheduler configuration.

    Attributes:
        enabled: Whether scheduled SQLite backups run
        interval_minutes: Minutes between backup uploads
        cleanup_interval_hours: Hours between retention cleanups
        run_on_start: Upload one backup immediately when started
    """

    enabled: bool = False
    interval_minutes: int = 60
    cleanup_interval_hours: int = 24
    run_on_start: bool = True

    @classmethod
    def from_env(cls) -> SchedulerConfig:
        """Load configuration from environment variables."""
        return cls(
            enabled=_env_flag("ENABLE_SQLITE_BACKUP"),
            interval_minutes=int(os.getenv("SQLITE_BACKUP_INTERVAL", "60")),
            cleanup_interval_hours=int(os.getenv("BACKUP_CLEANUP_INTERVAL_HOURS", "24")),
            run_on_start=_env_flag("BACKUP_RUN_ON_START", "true"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class VaultConfig:
    """Complete dbvault configuration.

    Attributes:
        storage: Local storage configuration
        encryption: Encryption configuration
        s3: Remote store configuration
        retention: Retention windows
        scheduler: Scheduler configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    encryption: EncryptionConfig = field(default_factory=EncryptionConfig)
    s3: S3Config = field(default_factory=S3Config)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> VaultConfig:
        """Load complete configuration from environment variables.

        Returns:
            VaultConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            encryption=EncryptionConfig.from_env(),
            s3=S3Config.from_env(),
            retention=RetentionConfig.from_env(),
            scheduler=SchedulerConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Missing secrets are not validated here; they surface as
        ConfigurationError at first use.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.s3.bucket:
            raise ValueError("S3_BUCKET must not be empty")
        if not self.s3.backup_prefix or self.s3.backup_prefix.endswith("/"):
            raise ValueError("BACKUP_PREFIX must be non-empty and must not end with '/'")
        if self.scheduler.interval_minutes <= 0:
            raise ValueError("SQLITE_BACKUP_INTERVAL must be positive")
        if self.scheduler.cleanup_interval_hours <= 0:
            raise ValueError("BACKUP_CLEANUP_INTERVAL_HOURS must be positive")

        r = self.retention
        if not 0 < r.daily_days <= r.weekly_days <= r.monthly_days:
            raise ValueError(
                "Retention windows must satisfy 0 < daily <= weekly <= monthly days"
            )

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "Backups will fail until the database is created."
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "dbvault configuration loaded",
            extra={
                "db_path": str(self.storage.db_path),
                "s3_bucket": self.s3.bucket,
                "s3_endpoint": self.s3.endpoint_url,
                "backup_prefix": self.s3.backup_prefix,
                "backup_key_configured": bool(self.encryption.backup_key),
                "store_credentials_configured": self.s3.credentials.is_configured,
                "scheduler_enabled": self.scheduler.enabled,
                "interval_minutes": self.scheduler.interval_minutes,
                "log_level": self.observability.log_level,
            },
        )

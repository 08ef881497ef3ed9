"""
Cash-Up Engine - Central Configuration
======================================
Load environment variables with safe defaults.
Does NOT crash if env vars are missing - uses defaults matching current behavior.

There is no process-wide settings singleton. The application owns a
SettingsCache and hands the Settings it returns to the services it builds.
"""

import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core import constants


def _get_bool(key: str, default: bool = False) -> bool:
    """Safely parse boolean from environment."""
    val = os.environ.get(key, str(default)).lower()
    return val in ("true", "1", "yes", "on")


def _get_int(key: str, default: int) -> int:
    """Safely parse int from environment."""
    try:
        return int(os.environ.get(key, str(default)))
    except (ValueError, TypeError):
        return default


def _get_float(key: str, default: float) -> float:
    """Safely parse float from environment."""
    try:
        return float(os.environ.get(key, str(default)))
    except (ValueError, TypeError):
        return default


@dataclass
class Settings:
    """
    Central configuration for the cash-up engine.

    All values have safe defaults matching current behavior.
    Does NOT crash if env vars are missing.
    """

    # ==========================================================================
    # Environment
    # ==========================================================================
    ENV: str = field(default_factory=lambda: os.getenv("ENV", "production"))
    DEBUG: bool = field(default_factory=lambda: _get_bool("DEBUG", False))

    # ==========================================================================
    # Logging
    # ==========================================================================
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    JSON_LOGS: bool = field(default_factory=lambda: _get_bool("JSON_LOGS", False))

    # ==========================================================================
    # API
    # ==========================================================================
    API_HOST: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    API_PORT: int = field(default_factory=lambda: _get_int("API_PORT", 8000))
    CORS_ORIGINS: str = field(default_factory=lambda: os.getenv("CORS_ORIGINS", "*"))
    MAX_UPLOAD_MB: int = field(default_factory=lambda: _get_int("MAX_UPLOAD_MB", 10))

    # ==========================================================================
    # Database ("memory://" keeps everything in process)
    # ==========================================================================
    DATABASE_URL: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "memory://"))

    # ==========================================================================
    # Evidence storage (memory | minio)
    # ==========================================================================
    STORAGE_BACKEND: str = field(default_factory=lambda: os.getenv("STORAGE_BACKEND", "memory"))
    MINIO_ENDPOINT: str = field(default_factory=lambda: os.getenv("MINIO_ENDPOINT", "localhost:9000"))
    MINIO_ACCESS_KEY: str = field(default_factory=lambda: os.getenv("MINIO_ACCESS_KEY", "minioadmin"))
    MINIO_SECRET_KEY: str = field(default_factory=lambda: os.getenv("MINIO_SECRET_KEY", "minioadmin"))
    MINIO_BUCKET: str = field(default_factory=lambda: os.getenv("MINIO_BUCKET", "cashup-evidence"))
    MINIO_SECURE: bool = field(default_factory=lambda: _get_bool("MINIO_SECURE", False))
    EVIDENCE_BASE_URL: str = field(
        default_factory=lambda: os.getenv("EVIDENCE_BASE_URL", "http://localhost:9000")
    )

    # ==========================================================================
    # Auth (HS256 bearer tokens issued by the portal)
    # ==========================================================================
    AUTH_ENABLED: bool = field(default_factory=lambda: _get_bool("AUTH_ENABLED", True))
    AUTH_JWT_SECRET: str = field(default_factory=lambda: os.getenv("AUTH_JWT_SECRET", ""))
    AUTH_JWT_ALGORITHM: str = field(default_factory=lambda: os.getenv("AUTH_JWT_ALGORITHM", "HS256"))

    # ==========================================================================
    # Cash-up rules
    # ==========================================================================
    CASHUP_CUTOFF_HOUR: int = field(default_factory=lambda: _get_int("CASHUP_CUTOFF_HOUR", constants.CUTOFF_HOUR))
    CASHUP_CUTOFF_MINUTE: int = field(
        default_factory=lambda: _get_int("CASHUP_CUTOFF_MINUTE", constants.CUTOFF_MINUTE)
    )
    CASHUP_GRACE_MINUTES: int = field(
        default_factory=lambda: _get_int("CASHUP_GRACE_MINUTES", constants.GRACE_PERIOD_MINUTES)
    )
    # IANA zone name; empty means naive local time
    CASHUP_TIMEZONE: str = field(default_factory=lambda: os.getenv("CASHUP_TIMEZONE", ""))
    BALANCE_TOLERANCE: float = field(
        default_factory=lambda: _get_float("BALANCE_TOLERANCE", constants.BALANCE_TOLERANCE)
    )
    HEADER_SCAN_ROWS: int = field(default_factory=lambda: _get_int("HEADER_SCAN_ROWS", constants.HEADER_SCAN_ROWS))
    METADATA_SCAN_ROWS: int = field(
        default_factory=lambda: _get_int("METADATA_SCAN_ROWS", constants.METADATA_SCAN_ROWS)
    )

    # ==========================================================================
    # Settings cache
    # ==========================================================================
    SETTINGS_TTL_SECONDS: int = field(default_factory=lambda: _get_int("SETTINGS_TTL_SECONDS", 300))

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    def validate_soft(self) -> list[str]:
        """
        Soft validation - returns list of warnings instead of raising.
        Use this for startup checks without crashing.
        """
        warnings = []

        if self.AUTH_ENABLED and not self.AUTH_JWT_SECRET:
            warnings.append("AUTH_JWT_SECRET is not set - every authenticated request will be rejected")

        if self.STORAGE_BACKEND not in ("memory", "minio"):
            warnings.append(f"STORAGE_BACKEND should be 'memory' or 'minio', got '{self.STORAGE_BACKEND}'")

        if self.BALANCE_TOLERANCE < 0:
            warnings.append(f"BALANCE_TOLERANCE must not be negative, got {self.BALANCE_TOLERANCE}")

        if not 0 <= self.CASHUP_CUTOFF_HOUR <= 23:
            warnings.append(f"CASHUP_CUTOFF_HOUR out of range: {self.CASHUP_CUTOFF_HOUR}")

        if self.CASHUP_TIMEZONE:
            try:
                ZoneInfo(self.CASHUP_TIMEZONE)
            except (ZoneInfoNotFoundError, ValueError):
                warnings.append(f"CASHUP_TIMEZONE is not a known IANA zone: '{self.CASHUP_TIMEZONE}'")

        return warnings


class SettingsCache:
    """
    Time-boxed holder for Settings.

    Owned by whoever builds the application and passed around by reference.
    A fresh Settings is loaded from the environment once the entry is older
    than ttl_seconds or after invalidate().
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        loader: Callable[[], Settings] = Settings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._clock = clock
        self._lock = threading.Lock()
        self._settings: Optional[Settings] = None
        self._loaded_at = 0.0
        self._ttl = ttl_seconds

    def get(self) -> Settings:
        with self._lock:
            now = self._clock()
            if self._settings is None or (now - self._loaded_at) >= self._effective_ttl():
                self._settings = self._loader()
                self._loaded_at = now
            return self._settings

    def invalidate(self) -> None:
        with self._lock:
            self._settings = None

    def _effective_ttl(self) -> float:
        if self._ttl is not None:
            return self._ttl
        return self._settings.SETTINGS_TTL_SECONDS if self._settings else 0


if __name__ == "__main__":
    s = SettingsCache().get()
    print(f"ENV: {s.ENV}")
    print(f"LOG_LEVEL: {s.LOG_LEVEL}")
    print(f"DATABASE_URL: {s.DATABASE_URL[:30]}...")
    print(f"STORAGE_BACKEND: {s.STORAGE_BACKEND}")

    warnings = s.validate_soft()
    if warnings:
        print(f"\nWarnings: {warnings}")
    else:
        print("\nConfig validated (soft)")

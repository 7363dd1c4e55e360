"""
Configuration module for Vehicle Alerts.

Loads environment variables and provides configuration constants.
All sensitive values should be in .env file (never commit to git).

Loop timings are expressed in minutes, the unit the rate controller
adjusts in tenths of.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass
class SupabaseConfig:
    """Supabase connection configuration."""
    url: str
    key: str  # Service role key for server-side operations

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        return cls(
            url=os.getenv("SUPABASE_URL", ""),
            key=os.getenv("SUPABASE_KEY", ""),
        )


@dataclass
class EmailConfig:
    """Email sending configuration (SMTP or SendGrid)."""
    provider: str  # "smtp" or "sendgrid"
    # SMTP settings
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    # SendGrid settings
    sendgrid_api_key: str
    # Common
    from_email: str
    from_name: str
    bcc_email: str = ""
    reply_to_email: str = ""

    @classmethod
    def from_env(cls) -> "EmailConfig":
        return cls(
            provider=os.getenv("EMAIL_PROVIDER", "smtp"),
            smtp_host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            sendgrid_api_key=os.getenv("SENDGRID_API_KEY", ""),
            from_email=os.getenv("FROM_EMAIL", "alerts@vehiclealerts.com"),
            from_name=os.getenv("FROM_NAME", "Vehicle Alerts"),
            bcc_email=os.getenv("BCC_EMAIL", ""),
            reply_to_email=os.getenv("REPLY_TO_EMAIL", ""),
        )


@dataclass
class SourceConfig:
    """Listing site settings for the AutoScout24 adapter."""
    base_url: str = "https://www.autoscout24.hu"
    # Newest-first listing query, 20 results per page
    query: str = (
        "/lst/?sort=age&desc=1&offer=J%2CU%2CO%2CD&ustate=N%2CU"
        "&size=20&page=1&cy=A&atype=C&ac=0&"
    )
    request_timeout: int = 30
    request_delay: float = 2.0  # Seconds between requests (be nice to servers)

    @classmethod
    def from_env(cls) -> "SourceConfig":
        defaults = cls()
        return cls(
            base_url=os.getenv("SOURCE_BASE_URL", defaults.base_url),
            query=os.getenv("SOURCE_QUERY", defaults.query),
            request_timeout=_env_int("REQUEST_TIMEOUT", defaults.request_timeout),
            request_delay=_env_float("REQUEST_DELAY", defaults.request_delay),
        )


@dataclass
class RateSettings:
    """Bounds and steps for one loop's sleep interval (minutes)."""
    interval: float
    floor: float
    ceiling: float
    speed_up_step: float = 0.1
    slow_down_step: float = 0.1

    @classmethod
    def from_env(cls, prefix: str, defaults: "RateSettings") -> "RateSettings":
        return cls(
            interval=_env_float(f"{prefix}_INTERVAL", defaults.interval),
            floor=_env_float(f"{prefix}_FLOOR", defaults.floor),
            ceiling=_env_float(f"{prefix}_CEILING", defaults.ceiling),
            speed_up_step=_env_float(f"{prefix}_SPEED_UP_STEP", defaults.speed_up_step),
            slow_down_step=_env_float(f"{prefix}_SLOW_DOWN_STEP", defaults.slow_down_step),
        )


DEFAULT_DISCOVERY_RATE = RateSettings(interval=2.5, floor=0.5, ceiling=15.0)
DEFAULT_EXTRACTION_RATE = RateSettings(
    interval=0.2, floor=0.2, ceiling=2.5, speed_up_step=0.25, slow_down_step=0.1
)
DEFAULT_DISPATCH_RATE = RateSettings(
    interval=0.5, floor=0.0, ceiling=2.0, speed_up_step=0.5, slow_down_step=0.5
)


@dataclass
class LoopConfig:
    """Timing configuration for the three polling loops."""
    discovery: RateSettings = field(default_factory=lambda: replace(DEFAULT_DISCOVERY_RATE))
    extraction: RateSettings = field(default_factory=lambda: replace(DEFAULT_EXTRACTION_RATE))
    dispatch: RateSettings = field(default_factory=lambda: replace(DEFAULT_DISPATCH_RATE))

    # Fixed pause after a failed listing page fetch (minutes)
    discovery_retry_delay: float = 3.0
    # More new listings than this per page means the source is busy
    discovery_busy_threshold: int = 5
    # Consecutive transient failures before an item is set aside
    extraction_max_error_count: int = 5
    # Pause after an unexpected error escaped a cycle (seconds)
    loop_error_delay: float = 20.0

    @classmethod
    def from_env(cls) -> "LoopConfig":
        return cls(
            discovery=RateSettings.from_env("DISCOVERY", DEFAULT_DISCOVERY_RATE),
            extraction=RateSettings.from_env("EXTRACTION", DEFAULT_EXTRACTION_RATE),
            dispatch=RateSettings.from_env("DISPATCH", DEFAULT_DISPATCH_RATE),
            discovery_retry_delay=_env_float("DISCOVERY_RETRY_DELAY", 3.0),
            discovery_busy_threshold=_env_int("DISCOVERY_BUSY_THRESHOLD", 5),
            extraction_max_error_count=_env_int("EXTRACTION_MAX_ERROR_COUNT", 5),
            loop_error_delay=_env_float("LOOP_ERROR_DELAY", 20.0),
        )


# Global configuration instances (lazy loaded)
_supabase_config: Optional[SupabaseConfig] = None
_email_config: Optional[EmailConfig] = None
_source_config: Optional[SourceConfig] = None
_loop_config: Optional[LoopConfig] = None


def get_supabase_config() -> SupabaseConfig:
    """Get Supabase configuration (cached)."""
    global _supabase_config
    if _supabase_config is None:
        _supabase_config = SupabaseConfig.from_env()
    return _supabase_config


def get_email_config() -> EmailConfig:
    """Get email configuration (cached)."""
    global _email_config
    if _email_config is None:
        _email_config = EmailConfig.from_env()
    return _email_config


def get_source_config() -> SourceConfig:
    """Get listing source configuration (cached)."""
    global _source_config
    if _source_config is None:
        _source_config = SourceConfig.from_env()
    return _source_config


def get_loop_config() -> LoopConfig:
    """Get polling loop configuration (cached)."""
    global _loop_config
    if _loop_config is None:
        _loop_config = LoopConfig.from_env()
    return _loop_config

import os
from dataclasses import dataclass
from datetime import tzinfo
from typing import Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pos.logging import get_logger

log = get_logger("config")


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_auth: Optional[str] = None
    seed_path: str = "data/seed.json"
    timezone: Optional[str] = None  # IANA name, None -> system local time
    scan_retry_seconds: float = 2.0
    request_timeout: float = 30.0
    currency: str = "₱"
    business_name: str = "Toledo Doctors"
    business_address: Tuple[str, ...] = ("123 Medical Center Drive", "Toledo, City")
    business_contact: str = "Contact: (123) 456-7890"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def tz(self) -> Optional[tzinfo]:
        return resolve_timezone(self.timezone)

    @property
    def uses_remote_store(self) -> bool:
        return bool(self.database_url)


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name!r}") from e


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning(f"{key}={raw!r} is not a number; using {default}")
        return default
    if value <= 0:
        log.warning(f"{key}={raw!r} must be positive; using {default}")
        return default
    return value


def _text(env: Mapping[str, str], key: str) -> Optional[str]:
    raw = env.get(key)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from POS_* environment variables."""
    if env is None:
        env = os.environ
    defaults = Settings()

    timezone = _text(env, "POS_TIMEZONE")
    resolve_timezone(timezone)

    address = _text(env, "POS_BUSINESS_ADDRESS")
    settings = Settings(
        database_url=_text(env, "POS_DATABASE_URL"),
        database_auth=_text(env, "POS_DATABASE_AUTH"),
        seed_path=_text(env, "POS_SEED_PATH") or defaults.seed_path,
        timezone=timezone,
        scan_retry_seconds=_float(env, "POS_SCAN_RETRY_SECONDS", defaults.scan_retry_seconds),
        request_timeout=_float(env, "POS_REQUEST_TIMEOUT", defaults.request_timeout),
        currency=_text(env, "POS_CURRENCY") or defaults.currency,
        business_name=_text(env, "POS_BUSINESS_NAME") or defaults.business_name,
        business_address=(
            tuple(part.strip() for part in address.split(",", 1)) if address else defaults.business_address
        ),
        business_contact=_text(env, "POS_BUSINESS_CONTACT") or defaults.business_contact,
        log_level=_text(env, "LOG_LEVEL") or defaults.log_level,
        log_file=_text(env, "LOG_FILE"),
    )
    log.debug(
        f"Settings loaded: remote_store={settings.uses_remote_store}, "
        f"timezone={settings.timezone or 'local'}"
    )
    return settings

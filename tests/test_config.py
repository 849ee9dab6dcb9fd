import pytest

from pos.config import Settings, load_settings, resolve_timezone


def test_defaults():
    s = load_settings({})
    assert s == Settings()
    assert s.seed_path == "data/seed.json"
    assert s.scan_retry_seconds == 2.0
    assert s.currency == "₱"
    assert s.tz is None
    assert not s.uses_remote_store


def test_environment_overrides():
    s = load_settings({
        "POS_DATABASE_URL": "https://db.example.com",
        "POS_DATABASE_AUTH": " secret ",
        "POS_SCAN_RETRY_SECONDS": "3.5",
        "POS_TIMEZONE": "UTC",
        "POS_BUSINESS_ADDRESS": "1 Main St, Cebu City, PH",
    })
    assert s.uses_remote_store
    assert s.database_auth == "secret"
    assert s.scan_retry_seconds == 3.5
    assert s.tz is not None
    assert s.business_address == ("1 Main St", "Cebu City, PH")


def test_bad_numbers_fall_back():
    s = load_settings({"POS_SCAN_RETRY_SECONDS": "soon", "POS_REQUEST_TIMEOUT": "-1"})
    assert s.scan_retry_seconds == 2.0
    assert s.request_timeout == 30.0


def test_unknown_timezone_rejected():
    with pytest.raises(ValueError):
        load_settings({"POS_TIMEZONE": "Mars/Olympus_Mons"})
    assert resolve_timezone("") is None


def test_logging_settings():
    s = load_settings({"LOG_LEVEL": "debug", "LOG_FILE": " /tmp/pos.log "})
    assert s.log_level == "debug"
    assert s.log_file == "/tmp/pos.log"
    assert load_settings({}).log_file is None

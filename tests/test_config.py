"""Tests for berthwatch.config and berthwatch.web.config."""

import json
import os

import pytest

from berthwatch.config import load_config, load_sources
from berthwatch.web.config import load_web_config

OPTIONAL_VARS = (
    "SOURCES_CONFIG_PATH", "SOURCE_TIMEZONE", "CRAWL_INTERVAL_MINUTES",
    "FETCH_TIMEOUT_SECONDS", "MAX_FETCH_WORKERS", "WINDOW_PAST_DAYS",
    "WINDOW_FUTURE_DAYS", "SOURCE_FAILURE_WARN_THRESHOLD", "STALENESS_MINUTES",
    "DELAY_THRESHOLD_MINUTES", "LOG_LEVEL", "LOG_FORMAT", "APP_ENV",
    "WEB_HOST", "WEB_PORT", "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Remove all config-related env vars before each test."""
    for key in ("DATABASE_PATH", *OPTIONAL_VARS):
        monkeypatch.delenv(key, raising=False)
    # Prevent .env file from re-setting variables during tests
    monkeypatch.setattr("berthwatch.config.load_dotenv", lambda *a, **kw: None)
    monkeypatch.setattr("berthwatch.web.config.load_dotenv", lambda *a, **kw: None)


def test_missing_required_vars_raises():
    """load_config raises ValueError listing all missing required variables."""
    with pytest.raises(ValueError, match="DATABASE_PATH"):
        load_config()


def test_load_config_defaults(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "./test.db")

    config = load_config()

    assert config.database_path == "./test.db"
    assert config.sources_config_path == "./config/sources.json"
    assert config.source_timezone == "Asia/Seoul"
    assert config.crawl_interval_minutes == 10
    assert config.fetch_timeout_seconds == 30.0
    assert config.max_fetch_workers == 8
    assert config.window_past_days == 7
    assert config.window_future_days == 30
    assert config.source_failure_warn_threshold == 3
    assert config.staleness_minutes == 5
    assert config.delay_threshold_minutes == 60
    assert config.log_level == "INFO"
    assert config.log_format == "json"
    assert config.app_env == "production"


def test_load_config_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "/data/berth.db")
    monkeypatch.setenv("CRAWL_INTERVAL_MINUTES", "15")
    monkeypatch.setenv("FETCH_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("STALENESS_MINUTES", "2")
    monkeypatch.setenv("DELAY_THRESHOLD_MINUTES", "30")
    monkeypatch.setenv("SOURCE_TIMEZONE", "UTC")
    monkeypatch.setenv("LOG_FORMAT", "text")

    config = load_config()

    assert config.crawl_interval_minutes == 15
    assert config.fetch_timeout_seconds == 12.5
    assert config.staleness_minutes == 2
    assert config.delay_threshold_minutes == 30
    assert config.source_timezone == "UTC"
    assert config.log_format == "text"


def test_config_is_frozen(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "./test.db")
    config = load_config()
    with pytest.raises(AttributeError):
        config.database_path = "/other.db"


def test_invalid_integer_raises(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "./test.db")
    monkeypatch.setenv("CRAWL_INTERVAL_MINUTES", "often")
    with pytest.raises(ValueError):
        load_config()


# --- Web config ---


def test_web_config_requires_database_path():
    with pytest.raises(ValueError, match="DATABASE_PATH"):
        load_web_config()


def test_web_config_defaults(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "./test.db")
    config = load_web_config()
    assert config.web_host == "0.0.0.0"
    assert config.web_port == 8080
    assert config.cors_origins == ()


def test_web_config_cors_origins(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "./test.db")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
    config = load_web_config()
    assert config.cors_origins == ("https://a.example", "https://b.example")


# --- Sources file ---


def _write_sources(tmp_path, data) -> str:
    path = tmp_path / "sources.json"
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)


def test_load_sources(tmp_path):
    path = _write_sources(tmp_path, {
        "port_order": ["부산", "부산신항"],
        "sources": [
            {"code": "pnc", "name": "부산신항만(PNC)", "url": "https://svc.pncport.com",
             "port": "부산신항", "type": "json", "fields": {"vessel_name": "vsl"}},
            {"code": "BCT", "type": "html_table", "enabled": False},
        ],
    })

    catalog = load_sources(path)

    assert catalog.port_order == ["부산", "부산신항"]
    assert [s.terminal.code for s in catalog.sources] == ["PNC", "BCT"]
    pnc, bct = catalog.sources
    assert pnc.terminal.port == "부산신항"
    assert pnc.options["fields"] == {"vessel_name": "vsl"}
    assert pnc.enabled is True
    assert bct.enabled is False
    assert bct.terminal.name == "BCT"
    assert [t.code for t in catalog.terminals] == ["PNC", "BCT"]


def test_load_sources_requires_code(tmp_path):
    path = _write_sources(tmp_path, {"sources": [{"type": "json"}]})
    with pytest.raises(ValueError, match="'code' is required"):
        load_sources(path)


def test_load_sources_requires_type(tmp_path):
    path = _write_sources(tmp_path, {"sources": [{"code": "PNC"}]})
    with pytest.raises(ValueError, match="'type' is required"):
        load_sources(path)


def test_load_sources_rejects_duplicates(tmp_path):
    path = _write_sources(tmp_path, {
        "sources": [{"code": "PNC", "type": "json"}, {"code": "pnc", "type": "json"}],
    })
    with pytest.raises(ValueError, match="Duplicate"):
        load_sources(path)


def test_bundled_sources_file_loads():
    path = os.path.join(os.path.dirname(__file__), "..", "config", "sources.json")
    catalog = load_sources(path)
    assert catalog.port_order[0] == "부산"
    assert len({s.terminal.code for s in catalog.sources}) == len(catalog.sources)


def test_web_config_rejects_bad_port(monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", "./test.db")
    monkeypatch.setenv("WEB_PORT", "70000")
    with pytest.raises(ValueError, match="WEB_PORT"):
        load_web_config()

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from replication_checker.config import (
    AutoCheckFrequency,
    ConfigurationError,
    FloraConfig,
    MissingConfigurationError,
    ResilienceConfig,
    StorageConfig,
    env_bool,
    env_int,
    get_checker_settings,
    get_database_config,
    get_flora_config,
    get_storage_config,
    require_env_vars,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "REPLICATION_CHECKER_API_URL",
        "REPLICATION_CHECKER_API_TIMEOUT",
        "REPLICATION_CHECKER_BATCH_SIZE",
        "REPLICATION_CHECKER_AUTO_CHECK_FREQUENCY",
        "REPLICATION_CHECKER_AUTO_CHECK_NEW_ITEMS",
        "REPLICATION_CHECKER_NEW_RECORD_DELAY",
        "REPLICATION_CHECKER_CREATE_NOTES",
        "REPLICATION_CHECKER_CREATE_FOLDERS",
        "REPLICATION_CHECKER_DATA_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


def test_checker_settings_defaults() -> None:
    settings = get_checker_settings()

    assert settings.auto_check_new_items
    assert settings.auto_check_frequency is AutoCheckFrequency.NEVER
    assert settings.new_record_delay_seconds == 2.0
    assert settings.create_notes
    assert settings.create_folders


def test_checker_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPLICATION_CHECKER_AUTO_CHECK_FREQUENCY", "Weekly")
    monkeypatch.setenv("REPLICATION_CHECKER_AUTO_CHECK_NEW_ITEMS", "off")
    monkeypatch.setenv("REPLICATION_CHECKER_NEW_RECORD_DELAY", "0.5")
    monkeypatch.setenv("REPLICATION_CHECKER_CREATE_FOLDERS", "no")

    settings = get_checker_settings()

    assert settings.auto_check_frequency is AutoCheckFrequency.WEEKLY
    assert settings.auto_check_frequency.interval == timedelta(days=7)
    assert not settings.auto_check_new_items
    assert settings.new_record_delay_seconds == 0.5
    assert not settings.create_folders
    assert AutoCheckFrequency.NEVER.interval is None


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("REPLICATION_CHECKER_AUTO_CHECK_FREQUENCY", "hourly"),
        ("REPLICATION_CHECKER_AUTO_CHECK_NEW_ITEMS", "maybe"),
        ("REPLICATION_CHECKER_NEW_RECORD_DELAY", "-1"),
        ("REPLICATION_CHECKER_NEW_RECORD_DELAY", "soon"),
    ],
)
def test_invalid_checker_settings(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError):
        get_checker_settings()


def test_env_helpers_treat_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RC_TEST_FLAG", "  ")
    monkeypatch.setenv("RC_TEST_COUNT", "12")

    assert env_bool("RC_TEST_FLAG", default=True)
    assert env_int("RC_TEST_COUNT", 3) == 12
    with pytest.raises(MissingConfigurationError, match="RC_TEST_FLAG"):
        require_env_vars(["RC_TEST_FLAG", "RC_TEST_COUNT"])


def test_flora_config_defaults_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    default = get_flora_config()
    assert default.resilience.base_url == "https://rep-api.forrt.org/v1/"
    assert default.batch_size == 100

    monkeypatch.setenv("REPLICATION_CHECKER_API_URL", "https://flora.example/v2")
    monkeypatch.setenv("REPLICATION_CHECKER_BATCH_SIZE", "25")
    monkeypatch.setenv("REPLICATION_CHECKER_API_TIMEOUT", "5")

    config = get_flora_config()

    assert config.resilience.base_url == "https://flora.example/v2/"
    assert config.resilience.timeout_seconds == 5.0
    assert config.batch_size == 25
    assert config.lookup_path == "prefix-lookup"


@pytest.mark.parametrize("batch_size", [0, 101])
def test_flora_batch_size_is_bounded(batch_size: int) -> None:
    with pytest.raises(ConfigurationError, match="between 1 and 100"):
        FloraConfig(resilience=ResilienceConfig(name="flora"), batch_size=batch_size)


def test_storage_paths(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REPLICATION_CHECKER_DATA_DIR", str(tmp_path / "data"))

    storage = get_storage_config()

    assert storage.database_path(ensure=False) == (tmp_path / "data" / "library.db").resolve()
    assert not (tmp_path / "data").exists()
    assert storage.database_uri().endswith("/data/library.db")
    assert (tmp_path / "data").is_dir()


def test_database_uri_prefers_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")
    assert get_database_config().uri == "sqlite+pysqlite:///:memory:"

    monkeypatch.delenv("DATABASE_URI")
    storage = StorageConfig(data_dir=tmp_path)
    expected = f"sqlite+pysqlite:///{tmp_path.resolve()}/library.db"
    assert get_database_config(storage=storage).uri == expected

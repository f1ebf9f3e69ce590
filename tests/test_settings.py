import os
from unittest.mock import patch

import pytest

from budget_book.core import settings
from budget_book.services.date_range import resolve_date_range
from budget_book.storage.factory import create_store
from budget_book.storage.local import LocalStore
from budget_book.storage.remote import RemoteStore


def test_read_config_file(tmp_path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "\n".join([
            "# budget settings",
            "STORAGE_BACKEND: remote",
            'BUDGET_API_URL: "http://api.local:3000"  # dev server',
            "BUDGET_API_TOKEN: 'abc#123'",
            "EMPTY:",
            "not a pair",
        ]),
        encoding="utf-8",
    )

    values = settings.read_config_file(str(config))

    assert values == {
        "STORAGE_BACKEND": "remote",
        "BUDGET_API_URL": "http://api.local:3000",
        "BUDGET_API_TOKEN": "abc#123",
    }


def test_read_config_file_missing() -> None:
    assert settings.read_config_file(None) == {}
    assert settings.read_config_file("/nonexistent/config.yaml") == {}


def test_load_environment_prefers_real_env(tmp_path) -> None:
    (tmp_path / "config.yaml").write_text(
        "STORAGE_BACKEND: remote\nBUDGET_CATEGORIES_TTL: 5\n",
        encoding="utf-8",
    )

    with patch.dict(os.environ, {"CONFIG_DIR": str(tmp_path), "STORAGE_BACKEND": "local"}):
        os.environ.pop("BUDGET_CATEGORIES_TTL", None)
        settings.load_environment()

        assert os.environ["STORAGE_BACKEND"] == "local"
        assert os.environ["BUDGET_CATEGORIES_TTL"] == "5"
        assert settings.get_config_path() == str(tmp_path / "config.yaml")
        assert settings.is_env_override("STORAGE_BACKEND")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("true", True), ("ON", True), ("0", False), ("no", False), ("maybe", False), ("", False)],
)
def test_get_env_bool(monkeypatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("CSV_STRICT_TYPE_LABELS", raw)

    assert settings.get_env_bool("CSV_STRICT_TYPE_LABELS", False) is expected


def test_get_env_numbers_fall_back_on_bad_input(monkeypatch) -> None:
    monkeypatch.setenv("BUDGET_CATEGORIES_TTL", "soon")
    monkeypatch.setenv("PORT", "-1")

    assert settings.get_env_float("BUDGET_CATEGORIES_TTL", 60.0) == 60.0
    assert settings.get_env_int("PORT", 8000, min_value=1) == 8000


def test_storage_backend_selection(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("STORAGE_BACKEND", "Remote")
    monkeypatch.setenv("BUDGET_API_URL", "http://api.local")

    assert isinstance(create_store(), RemoteStore)

    monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
    store = create_store()

    assert isinstance(store, LocalStore)
    assert store.data_path == os.path.join(str(tmp_path), settings.LOCAL_STORE_FILENAME)


@pytest.mark.parametrize(
    ("name", "value", "expected"),
    [
        ("BUDGET_API_TOKEN", "secret-token", "se...en"),
        ("BUDGET_API_TOKEN", "abc", "****"),
        ("BUDGET_API_URL", "http://api.local", "http://api.local"),
        ("LOG_LEVEL", "Bearer xyz123", "Be...23"),
    ],
)
def test_mask_env_value(name: str, value: str, expected: str) -> None:
    assert settings._mask_env_value(name, value) == expected


def test_resolve_date_range() -> None:
    start, end = resolve_date_range("2024-03-01", "2024-03-01")

    assert start is not None and end is not None
    assert start.date() == end.date()
    assert (end.hour, end.minute, end.second) == (23, 59, 59)
    assert resolve_date_range(None, None) == (None, None)
    with pytest.raises(ValueError):
        resolve_date_range("2024-03-02", "2024-03-01")


def test_log_environment_reports_source_and_masks(caplog, monkeypatch) -> None:
    monkeypatch.setenv("BUDGET_API_TOKEN", "secret-token")
    monkeypatch.delenv("BUDGET_API_URL", raising=False)
    monkeypatch.setattr(settings, "_EXTERNAL_ENV_KEYS", {"BUDGET_API_TOKEN"})

    with caplog.at_level("INFO", logger="budget_book.core.settings"):
        settings.log_environment()

    assert "[ENV] Config file:" in caplog.text
    assert "BUDGET_API_TOKEN=se...en (env)" in caplog.text
    assert "BUDGET_API_URL=<unset> (default)" in caplog.text
    assert "secret-token" not in caplog.text


@pytest.mark.parametrize(("raw", "expected"), [("9000", 9000), ("abc", 8000), ("0", 8000)])
def test_main_reads_port_from_environment(monkeypatch, raw: str, expected: int) -> None:
    from budget_book import main as entrypoint

    monkeypatch.setenv("PORT", raw)
    with patch("budget_book.main.uvicorn.run") as run:
        entrypoint.main()

    assert run.call_args.kwargs["port"] == expected

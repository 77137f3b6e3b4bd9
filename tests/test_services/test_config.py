"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from labfiles.config import Settings


class TestSettings:
    def test_default_settings(self) -> None:
        s = Settings(_env_file=None)
        assert s.debug is False
        assert s.port == 8000
        assert s.watched_prefix == "test/"
        assert s.database_url == "sqlite+aiosqlite:///data/db/main.db"

    def test_raw_data_dir_joins_base_and_fixed_suffix(self, tmp_path: Path) -> None:
        s = Settings(_env_file=None, raw_data_base_path=tmp_path)
        assert s.raw_data_dir == tmp_path / "001shared/saw-rfid-project/raw_data/test"

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("RAW_DATA_BASE_PATH", str(tmp_path))
        monkeypatch.setenv("WATCHED_PREFIX", "runs/")
        s = Settings(_env_file=None)
        assert s.raw_data_base_path == tmp_path
        assert s.watched_prefix == "runs/"

    def test_settings_from_fixture(self, test_settings: Settings) -> None:
        assert test_settings.debug is True
        assert test_settings.raw_data_dir.is_dir()


class TestValidateRuntime:
    def test_default_prefix_is_valid(self) -> None:
        Settings(_env_file=None).validate_runtime()

    @pytest.mark.parametrize("prefix", ["test", "", "/test/"])
    def test_rejects_bad_prefix(self, prefix: str) -> None:
        s = Settings(_env_file=None, watched_prefix=prefix)
        with pytest.raises(ValueError, match="WATCHED_PREFIX"):
            s.validate_runtime()


class TestCliEntry:
    def test_cli_entry_uses_app_settings(self) -> None:
        """cli_entry() uses the global app's settings."""
        from labfiles.main import app, cli_entry

        original_settings = getattr(app.state, "settings", None)
        app.state.settings = Settings(_env_file=None, host="127.0.0.1", port=9999, debug=True)

        try:
            with patch("uvicorn.run") as mock_run:
                cli_entry()

            mock_run.assert_called_once_with(
                "labfiles.main:app",
                host="127.0.0.1",
                port=9999,
                reload=True,
            )
        finally:
            app.state.settings = original_settings

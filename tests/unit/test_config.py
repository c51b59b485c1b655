"""
test_config.py - Unit tests for runtime settings
"""

from decimal import Decimal
from pathlib import Path

from lifestock import Settings, get_settings


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.data_dir == Path("./data")
        assert settings.storage_key == "lifestock_sqlite_db"
        assert settings.initial_cash == Decimal("10000000")
        assert settings.brokerage_rate == Decimal("0.0003")
        assert settings.min_brokerage == Decimal("20")
        assert settings.time_value_factor == Decimal("0.1")
        assert settings.min_premium == Decimal("1")
        assert settings.strike_step == Decimal("100")
        assert settings.strike_levels == 2
        assert settings.verbose is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LIFESTOCK_INITIAL_CASH", "500000")
        monkeypatch.setenv("LIFESTOCK_STRIKE_LEVELS", "3")
        monkeypatch.setenv("LIFESTOCK_VERBOSE", "true")
        settings = Settings(_env_file=None)
        assert settings.initial_cash == Decimal("500000")
        assert settings.strike_levels == 3
        assert settings.verbose is True

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LIFESTOCK_MIN_BROKERAGE=5\nUNRELATED=1\n")
        settings = Settings(_env_file=env_file)
        assert settings.min_brokerage == Decimal("5")

    def test_ensure_dirs(self, tmp_path):
        settings = Settings(_env_file=None, data_dir=tmp_path / "nested" / "data")
        settings.ensure_dirs()
        assert settings.data_dir.is_dir()

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

"""Tests for ooo_settings: timezone selection and validation."""

from zoneinfo import ZoneInfo

import pytest

import ooo_settings
from ooo_errors import ConfigError
from ooo_settings import TIMEZONE_ENV, default_timezone_name, resolve_timezone


class TestDefaultTimezoneName:
    def test_environment_variable_wins(self, monkeypatch):
        monkeypatch.setenv(TIMEZONE_ENV, "Asia/Tokyo")
        monkeypatch.setattr(ooo_settings.tzlocal, "get_localzone_name", lambda: "Europe/Berlin")

        assert default_timezone_name() == "Asia/Tokyo"

    def test_system_zone_when_unset(self, monkeypatch):
        monkeypatch.delenv(TIMEZONE_ENV, raising=False)
        monkeypatch.setattr(ooo_settings.tzlocal, "get_localzone_name", lambda: "Europe/Berlin")

        assert default_timezone_name() == "Europe/Berlin"

    def test_unconfigured_host_falls_back_to_utc(self, monkeypatch):
        monkeypatch.delenv(TIMEZONE_ENV, raising=False)
        monkeypatch.setattr(ooo_settings.tzlocal, "get_localzone_name", lambda: None)

        assert default_timezone_name() == "UTC"
        assert resolve_timezone(default_timezone_name()) == ZoneInfo("UTC")


class TestResolveTimezone:
    def test_known_zone(self):
        assert resolve_timezone("Europe/Berlin").key == "Europe/Berlin"

    @pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "../etc/passwd", None])
    def test_invalid_zone_is_config_error(self, name):
        with pytest.raises(ConfigError):
            resolve_timezone(name)

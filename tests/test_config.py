"""
Tests for YAML configuration loading and validation.
"""

from datetime import date, time

import pytest
from pydantic import ValidationError

from slotguard.config import AppConfig, BusinessHoursConfig, RetryConfig, SearchConfig
from slotguard.domain.models import DEFAULT_BUSINESS_HOURS


CONFIG_YAML = """
api_url: https://example.supabase.co/
timezone: America/Sao_Paulo
enforce_business_hours: true
business_hours:
  weekdays: [Monday, tuesday, wednesday]
  openingTime: "09:00"
  closingTime: "18:00"
  slotDuration: 45
  holidays:
    - date: "2025-06-19"
      name: Corpus Christi
retry:
  max_retries: 5
search:
  max_days: 7
providers:
  - name: ana
    id: prov-ana
  - name: bruno
    id: prov-bruno
"""


class TestAppConfig:
    """Tests for AppConfig loading."""

    def test_load_from_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(CONFIG_YAML, encoding="utf-8")

        config = AppConfig.load_from_yaml(config_file)

        assert config.api_url == "https://example.supabase.co"
        assert config.enforce_business_hours
        assert config.retry.max_retries == 5
        assert config.retry.initial_delay == 1.0
        assert config.search.max_days == 7
        assert config.search.step_minutes == 15
        assert len(config.providers) == 2

    def test_business_hours_aliases_map_to_domain(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(CONFIG_YAML, encoding="utf-8")

        hours = AppConfig.load_from_yaml(config_file).fallback_business_hours()

        assert hours.weekdays == frozenset({"monday", "tuesday", "wednesday"})
        assert hours.opening_time == time(9, 0)
        assert hours.closing_time == time(18, 0)
        assert hours.slot_duration_minutes == 45
        assert hours.is_holiday(date(2025, 6, 19))

    def test_defaults(self):
        config = AppConfig()

        assert config.timezone == "America/Sao_Paulo"
        assert not config.enforce_business_hours
        assert config.fallback_business_hours() is DEFAULT_BUSINESS_HOURS

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("providers: [unclosed", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(config_file)

    def test_non_mapping_root(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(config_file)

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            AppConfig(timezone="Mars/Olympus_Mons")

    def test_api_url_must_be_http(self):
        with pytest.raises(ValidationError):
            AppConfig(api_url="ftp://example.com")

    def test_duplicate_provider_names(self):
        with pytest.raises(ValidationError, match="Duplicate provider name"):
            AppConfig(providers=[
                {"name": "Ana", "id": "p1"},
                {"name": "ana", "id": "p2"},
            ])


class TestProviderResolution:
    """Tests for provider alias resolution."""

    def test_resolve_by_name_or_id(self):
        config = AppConfig(providers=[{"name": "ana", "id": "prov-ana"}])

        assert config.resolve_provider("ANA") == "prov-ana"
        assert config.resolve_provider("prov-ana") == "prov-ana"

    def test_unknown_provider(self):
        config = AppConfig(providers=[{"name": "ana", "id": "prov-ana"}])

        with pytest.raises(ValueError, match="Unknown provider"):
            config.resolve_provider("carla")

    def test_raw_id_without_configured_providers(self):
        assert AppConfig().resolve_provider("prov-x") == "prov-x"


class TestBusinessHoursConfig:
    """Tests for the business hours settings record."""

    def test_closing_before_opening(self):
        with pytest.raises(ValidationError, match="closingTime"):
            BusinessHoursConfig(openingTime="18:00", closingTime="09:00")

    def test_malformed_time(self):
        with pytest.raises(ValidationError):
            BusinessHoursConfig(openingTime="9am")

    def test_unknown_weekday(self):
        with pytest.raises(ValidationError, match="Unknown weekday"):
            BusinessHoursConfig(weekdays=["monday", "funday"])

    def test_short_holiday_name(self):
        with pytest.raises(ValidationError, match="at least 3 characters"):
            BusinessHoursConfig(holidays=[{"date": "2025-12-25", "name": "X"}])

    def test_invalid_holiday_date(self):
        with pytest.raises(ValidationError):
            BusinessHoursConfig(holidays=[{"date": "25/12/2025", "name": "Christmas"}])

    def test_from_domain_uses_aliases(self):
        record = BusinessHoursConfig.from_domain(DEFAULT_BUSINESS_HOURS)

        dumped = record.model_dump(by_alias=True)

        assert dumped["openingTime"] == "08:00"
        assert dumped["closingTime"] == "20:00"
        assert dumped["slotDuration"] == 30
        assert dumped["weekdays"][0] == "monday"
        assert "sunday" not in dumped["weekdays"]


class TestSearchAndRetryConfig:
    """Tests for bounded search and retry settings."""

    def test_rollover_after_reopen(self):
        with pytest.raises(ValidationError):
            SearchConfig(rollover_hour=8, reopen_hour=8)

    def test_positive_bounds(self):
        with pytest.raises(ValidationError):
            SearchConfig(max_days=0)

    def test_retry_requires_one_attempt(self):
        with pytest.raises(ValidationError):
            RetryConfig(max_retries=0)

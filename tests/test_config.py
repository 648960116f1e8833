import pytest
from pydantic import ValidationError

from pos_api.core.config import Settings, EnvironmentMode


def test_defaults():
    settings = Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:")

    assert settings.env_mode == EnvironmentMode.DEVELOPMENT
    assert settings.tax_rate == 0.0825
    assert settings.terminal_order_statuses_list == ["completed", "cancelled"]
    assert settings.uses_sqlite
    assert settings.report_queue == "pos_reports"
    assert settings.restock_threshold == 20


def test_lists_are_parsed_from_comma_separated_values():
    settings = Settings(
        _env_file=None,
        database_url="postgresql+psycopg://pos:pos@db:5432/pos",
        cors_origins="http://kiosk.local, http://pos.local,",
        terminal_order_statuses="Completed, CANCELLED, refunded",
    )

    assert settings.cors_origins_list == ["http://kiosk.local", "http://pos.local"]
    assert settings.terminal_order_statuses_list == ["completed", "cancelled", "refunded"]
    assert not settings.uses_sqlite


def test_env_mode_is_case_insensitive():
    assert Settings(_env_file=None, env_mode="PRODUCTION").is_production


@pytest.mark.parametrize("rate", [-0.1, 1.0, 8.25])
def test_tax_rate_must_be_a_fraction(rate):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, tax_rate=rate)

from __future__ import annotations

import pytest

from recruitops.workable.errors import ConfigurationError
from recruitops.workable.settings import SyncConfig, clean_subdomain


@pytest.mark.parametrize(
    "value, expected",
    [
        ("acme", "acme"),
        ("ACME.workable.com", "acme"),
        ("https://acme.workable.com/spi/v3", "acme"),
        ("  acme  ", "acme"),
        (None, ""),
        ("", ""),
    ],
)
def test_clean_subdomain(value, expected):
    assert clean_subdomain(value) == expected


def test_from_mapping_applies_defaults_and_coerces_values():
    config = SyncConfig.from_mapping(
        {
            "WORKABLE_API_TOKEN": "t",
            "WORKABLE_SUBDOMAIN": "https://acme.workable.com",
            "DATABASE_URL": "sqlite://",
            "WORKABLE_PAGE_SIZE": "50",
            "SYNC_WRITE_BATCH_SIZE": "not-a-number",
            "WORKABLE_PAGE_DELAY_SECONDS": "-1",
        }
    )

    assert config.page_size == 50
    assert config.write_batch_size == 25
    assert config.page_delay_seconds == 0.0
    assert config.max_pages == 200
    assert config.base_url == "https://acme.workable.com/spi/v3"
    assert config.missing_settings() == []
    assert config.validate() is config


def test_validate_lists_every_missing_setting():
    config = SyncConfig(api_token="  ", subdomain=None)

    with pytest.raises(ConfigurationError) as excinfo:
        config.validate()

    assert excinfo.value.missing == ("WORKABLE_API_TOKEN", "WORKABLE_SUBDOMAIN", "DATABASE_URL")
    assert "WORKABLE_API_TOKEN" in str(excinfo.value)


def test_flask_config_provides_database_url(app):
    config = SyncConfig.from_mapping(app.config)

    assert config.database_url.startswith("sqlite:///")
    assert config.missing_settings() == []

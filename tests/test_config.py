import pytest

from calfeed.config import Settings


def test_defaults():
    settings = Settings()

    assert settings.cookie_prefix == "BITRIX_SM_"
    assert settings.forum_id is None
    assert settings.managed_cache is True


def test_from_env_reads_prefixed_variables():
    settings = Settings.from_env(
        {
            "CALFEED_COOKIE_NAME": "PORTAL",
            "CALFEED_FORUM_ID": "12",
            "CALFEED_MANAGED_CACHE": "no",
            "CALFEED_LANGUAGE_ID": "de",
        }
    )

    assert settings.cookie_prefix == "PORTAL_"
    assert settings.forum_id == 12
    assert settings.managed_cache is False
    assert settings.language_id == "de"
    assert settings.site_id == "s1"


def test_from_env_treats_blank_forum_id_as_unset():
    assert Settings.from_env({"CALFEED_FORUM_ID": " "}).forum_id is None


def test_from_env_rejects_non_numeric_forum_id():
    with pytest.raises(ValueError, match="CALFEED_FORUM_ID"):
        Settings.from_env({"CALFEED_FORUM_ID": "general"})

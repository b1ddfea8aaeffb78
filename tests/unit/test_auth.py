import json

import pytest

from app.config import Settings
from app.connectors.sheets.auth import build_credentials, load_service_account_info
from app.core.errors import ConfigurationError


def _settings(**kwargs) -> Settings:
    base = {
        "google_service_account_json": None,
        "google_service_account_client_email": None,
        "google_service_account_private_key": None,
        "google_service_account_project_id": None,
        "google_service_account_key_file": None,
    }
    base.update(kwargs)
    return Settings(_env_file=None, **base)


def test_inline_json_wins_and_key_newlines_are_restored():
    info = {"client_email": "a@x.iam", "private_key": "-----BEGIN-----\\nabc\\n-----END-----"}
    cfg = _settings(
        google_service_account_json=json.dumps(info),
        google_service_account_client_email="b@x.iam",
        google_service_account_private_key="other",
    )

    loaded = load_service_account_info(cfg)

    assert loaded["client_email"] == "a@x.iam"
    assert loaded["private_key"] == "-----BEGIN-----\nabc\n-----END-----"


def test_email_and_key_pair_is_second_choice():
    cfg = _settings(
        google_service_account_client_email="b@x.iam",
        google_service_account_private_key="k\\ney",
        google_service_account_project_id="proj",
    )

    loaded = load_service_account_info(cfg)

    assert loaded["client_email"] == "b@x.iam"
    assert loaded["private_key"] == "k\ney"
    assert loaded["project_id"] == "proj"
    assert loaded["type"] == "service_account"


def test_invalid_json_falls_through_to_key_file(tmp_path):
    key_file = tmp_path / "sa.json"
    key_file.write_text(json.dumps({"client_email": "file@x.iam", "private_key": "k"}))
    cfg = _settings(
        google_service_account_json="{not json",
        google_service_account_key_file=str(key_file),
    )

    assert load_service_account_info(cfg)["client_email"] == "file@x.iam"


def test_nothing_configured():
    cfg = _settings(google_service_account_key_file="/does/not/exist.json")

    assert load_service_account_info(cfg) is None
    with pytest.raises(ConfigurationError):
        build_credentials(cfg)

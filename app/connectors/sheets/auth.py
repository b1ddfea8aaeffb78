"""MSYNC — Google Service Account Loading.

Sources, first match wins:
  1. GOOGLE_SERVICE_ACCOUNT_JSON (inline JSON)
  2. GOOGLE_SERVICE_ACCOUNT_CLIENT_EMAIL + GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY
  3. GOOGLE_SERVICE_ACCOUNT_KEY_FILE (absolute, or relative to the CWD)
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from google.oauth2 import service_account

from app.config import Settings, settings as default_settings
from app.core.errors import ConfigurationError
from app.core.logging import get_logger

logger = get_logger("sheets.auth")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def normalize_service_account(info: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Env-var private keys usually arrive with literal ``\\n`` sequences."""
    if not info:
        return None
    key = info.get("private_key")
    if key:
        info = {**info, "private_key": key.replace("\\n", "\n")}
    return info


def load_service_account_info(cfg: Optional[Settings] = None) -> Optional[Dict[str, Any]]:
    """Resolve service-account info from configuration, or None."""
    cfg = cfg or default_settings

    if cfg.google_service_account_json:
        try:
            return normalize_service_account(json.loads(cfg.google_service_account_json))
        except json.JSONDecodeError as e:
            logger.error(f"GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON: {e}")

    email = cfg.google_service_account_client_email
    private_key = cfg.google_service_account_private_key
    if email and private_key:
        return normalize_service_account(
            {
                "type": "service_account",
                "client_email": email,
                "private_key": private_key,
                "project_id": cfg.google_service_account_project_id,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )

    if cfg.google_service_account_key_file:
        path = Path(cfg.google_service_account_key_file)
        if not path.is_absolute():
            path = Path.cwd() / path
        try:
            return normalize_service_account(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not load GOOGLE_SERVICE_ACCOUNT_KEY_FILE {path}: {e}")

    return None


def build_credentials(cfg: Optional[Settings] = None) -> service_account.Credentials:
    """Service-account credentials scoped to Sheets."""
    info = load_service_account_info(cfg)
    if info is None:
        raise ConfigurationError("No Google service account credentials configured")
    try:
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except (KeyError, ValueError) as e:
        raise ConfigurationError(f"Invalid service account credentials: {e}") from e

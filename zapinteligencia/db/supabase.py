"""
Supabase client for the persistence layer.

The client is created lazily on first use; nothing connects at import time,
so the API and the tests run without Supabase as long as persistence is off.
"""
import base64
import json
import logging

from supabase import Client, create_client

from zapinteligencia.config import settings

logger = logging.getLogger(__name__)

_client: Client | None = None


def _jwt_role(token: str) -> str | None:
    parts = token.split(".")
    if len(parts) != 3:
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        role = json.loads(base64.urlsafe_b64decode(payload).decode("utf-8")).get("role")
    except (ValueError, UnicodeDecodeError, AttributeError):
        return None
    return role if isinstance(role, str) else None


def is_service_role_key(key: str) -> bool:
    """Writes to zap_* tables need a key that bypasses RLS."""
    if key.startswith("sb_secret_"):
        return True
    if key.startswith(("sb_publishable_", "sbp_")):
        return False
    return _jwt_role(key) == "service_role"


def _key() -> str:
    return settings.supabase_service_role_key or settings.supabase_key


def is_configured() -> bool:
    return bool(settings.supabase_url and _key())


def db_status() -> dict:
    key = _key()
    return {
        "configured": is_configured(),
        "service_role": bool(key) and is_service_role_key(key),
        "connected": _client is not None,
    }


def get_db() -> Client:
    global _client
    if _client is None:
        if not is_configured():
            raise RuntimeError("Supabase não configurado (SUPABASE_URL / SUPABASE_KEY)")
        key = _key()
        if not is_service_role_key(key):
            logger.warning(
                "Supabase key is not service-role; upserts into zap_* tables may be "
                "rejected by RLS. Configure SUPABASE_SERVICE_ROLE_KEY."
            )
        _client = create_client(settings.supabase_url, key)
        logger.info("Supabase client created for %s", settings.supabase_url)
    return _client

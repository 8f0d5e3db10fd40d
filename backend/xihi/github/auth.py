import logging
import time

import httpx
import jwt

from xihi.core.config import Settings

logger = logging.getLogger(__name__)

# GitHub refuses app tokens valid for more than ten minutes
JWT_LIFETIME = 5 * 60


class CredentialsError(Exception):
    pass


def mint_app_jwt(private_key: bytes, app_id: int, now: int | None = None) -> str:
    """Sign the short-lived JWT that identifies the GitHub App itself."""
    if now is None:
        now = int(time.time())
    payload = {
        "iat": now,
        "exp": now + JWT_LIFETIME,
        "iss": str(app_id),
    }
    return jwt.encode(payload, private_key, algorithm="RS256")


def load_app_jwt(settings: Settings) -> str:
    if settings.keyfile is None:
        raise CredentialsError("XIHI_KEYFILE is not configured")
    # Read on every mint so the key never sits in memory between events
    pem = settings.keyfile.read_bytes()
    return mint_app_jwt(pem, settings.app_id)


async def create_installation_token(settings: Settings) -> str:
    """Exchange an app JWT for an installation access token."""
    app_jwt = load_app_jwt(settings)
    async with httpx.AsyncClient(
        base_url=settings.github_api_url,
        timeout=settings.github_timeout,
        headers={
            "Accept": "application/vnd.github+json",
            "User-Agent": settings.user_agent,
            "Authorization": f"Bearer {app_jwt}",
        },
    ) as client:
        r = await client.post(
            f"/app/installations/{settings.installation_id}/access_tokens"
        )
        r.raise_for_status()
    logger.info(f"Created installation token for {settings.installation_id}")
    return r.json()["token"]

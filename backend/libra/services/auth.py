"""Drive OAuth token lookup and refresh."""

import logging
from datetime import UTC, datetime, timedelta

import httpx
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from libra.config import settings
from libra.exceptions import DriveNotConnectedError
from libra.models import DriveToken

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Refresh this long before the recorded expiry
EXPIRY_BUFFER = timedelta(minutes=5)


async def get_drive_token(db: AsyncSession, user_id: str) -> DriveToken | None:
    result = await db.execute(select(DriveToken).where(DriveToken.user_id == user_id))
    return result.scalar_one_or_none()


async def delete_drive_token(db: AsyncSession, user_id: str) -> bool:
    """Disconnect Drive for a user. Returns True if a token was removed."""
    result = await db.execute(delete(DriveToken).where(DriveToken.user_id == user_id))
    return result.rowcount > 0


def needs_refresh(token: DriveToken, now: datetime | None = None) -> bool:
    if token.expires_at is None:
        return False
    now = now or datetime.now(UTC)
    return now + EXPIRY_BUFFER >= token.expires_at


async def refresh_access_token(
    token: DriveToken,
    http_client: httpx.AsyncClient,
) -> DriveToken:
    """Refresh an expiring access token using the stored refresh token.

    Args:
        token: The user's token row; updated in place
        http_client: Shared HTTP client

    Returns:
        The same token row with new credentials

    Raises:
        DriveNotConnectedError: If there is no refresh token or Google rejects it
    """
    if not token.refresh_token:
        raise DriveNotConnectedError(f"No refresh token for user {token.user_id}")

    response = await http_client.post(
        GOOGLE_TOKEN_URL,
        data={
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "refresh_token": token.refresh_token,
            "grant_type": "refresh_token",
        },
    )

    if response.status_code != 200:
        logger.warning(f"Failed to refresh Drive token for user {token.user_id}: {response.text}")
        raise DriveNotConnectedError("Failed to refresh access token")

    payload = response.json()
    token.access_token = payload["access_token"]
    token.expires_at = datetime.now(UTC) + timedelta(seconds=payload.get("expires_in", 3600))
    if payload.get("refresh_token"):
        token.refresh_token = payload["refresh_token"]

    logger.info(f"Refreshed Drive token for user {token.user_id}")
    return token


async def get_valid_access_token(
    db: AsyncSession,
    user_id: str,
    http_client: httpx.AsyncClient,
) -> str:
    """Return a usable access token for the user, refreshing it if necessary.

    Raises:
        DriveNotConnectedError: If the user never connected Drive or refresh failed
    """
    token = await get_drive_token(db, user_id)
    if token is None:
        raise DriveNotConnectedError("No Drive tokens found for user. Complete OAuth first.")

    if needs_refresh(token):
        await refresh_access_token(token, http_client)
        await db.commit()

    return token.access_token

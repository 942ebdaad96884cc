"""
Authentication business logic.

Covers web sessions (access/refresh token pairs), registration and API token
management. Every API-token-gated operation resolves the caller first.
"""

from __future__ import annotations

from uuid import UUID

import argon2
import structlog

from codetime.auth.password import hash_password
from codetime.auth.tokens import mk_token_data
from codetime.errors import (
    ExpiredRefreshToken,
    InvalidCredentials,
    MissingRefreshTokenCookie,
    OperationError,
    RegistrationFailed,
    UnknownApiToken,
    UsernameExists,
)
from codetime.schemas import StoredApiToken, TokenData, TokenMetadata
from codetime.storage.contract import Db

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


async def get_user_by_token(db: Db, token: str) -> str:
    """Resolve an API or access token to its owner.

    Raises:
        UnknownApiToken: If the token is unknown or expired.
    """
    username = await db.get_user(token)
    if username is None:
        raise UnknownApiToken
    return username


async def _mint_token_pair(db: Db, username: str, refresh_expiry_hours: int) -> TokenData:
    token_data = mk_token_data(username)
    await db.create_web_token_pair(token_data, refresh_expiry_hours)
    return token_data


# ---------------------------------------------------------------------------
# Web sessions
# ---------------------------------------------------------------------------


async def create_auth_tokens(db: Db, username: str, password: str, refresh_expiry_hours: int) -> TokenData:
    """Log in with username + password.

    Raises:
        InvalidCredentials: If the user is unknown or the password does not match.
    """
    user = await db.validate_credentials(username, password)
    if user is None:
        raise InvalidCredentials
    return await _mint_token_pair(db, user, refresh_expiry_hours)


async def refresh_auth_tokens(db: Db, refresh_token: str | None, refresh_expiry_hours: int) -> TokenData:
    """Mint a fresh pair from a refresh token.

    The presented refresh token is left in place and stays usable until it
    expires or the session is logged out.

    Raises:
        MissingRefreshTokenCookie: If no refresh token was presented.
        ExpiredRefreshToken: If the refresh token is unknown or expired.
    """
    if refresh_token is None:
        raise MissingRefreshTokenCookie

    username = await db.get_user_by_refresh_token(refresh_token)
    if username is None:
        raise ExpiredRefreshToken
    return await _mint_token_pair(db, username, refresh_expiry_hours)


async def clear_tokens(db: Db, access_token: str, refresh_token: str | None) -> None:
    """Log out by deleting both halves of the session.

    Raises:
        MissingRefreshTokenCookie: If no refresh token was presented.
        InvalidCredentials: If fewer than two rows were deleted (stale or partial session).
        OperationError: If more than two rows were deleted.
    """
    if refresh_token is None:
        raise MissingRefreshTokenCookie

    deleted = await db.delete_token_pair(access_token, refresh_token)
    if deleted in (0, 1):
        raise InvalidCredentials
    if deleted != 2:
        logger.error("logout_deleted_unexpected_rows", deleted=deleted)
        msg = "failed to delete all the tokens while logging out"
        raise OperationError(msg)


async def register_user(db: Db, username: str, password: str, refresh_expiry_hours: int) -> TokenData:
    """Create a user and its first session.

    Raises:
        RegistrationFailed: If the password cannot be hashed.
        UsernameExists: If the username is taken. No token pair is created.
    """
    try:
        hashed = hash_password(password)
    except argon2.exceptions.HashingError as e:
        raise RegistrationFailed(str(e)) from e

    if not await db.insert_user(username, hashed):
        raise UsernameExists(username)

    logger.info("user_registered", username=username)
    return await _mint_token_pair(db, username, refresh_expiry_hours)


# ---------------------------------------------------------------------------
# API tokens
# ---------------------------------------------------------------------------


async def create_new_api_token(db: Db, token: str) -> str:
    username = await get_user_by_token(db, token)
    return await db.create_api_token(username)


async def get_api_tokens(db: Db, token: str) -> list[StoredApiToken]:
    username = await get_user_by_token(db, token)
    return await db.list_api_tokens(username)


async def delete_api_token(db: Db, token: str, token_id: UUID) -> None:
    """Delete an API token by id.

    Only the caller's identity is checked; the deleted token is not required
    to belong to the caller.
    """
    username = await get_user_by_token(db, token)
    await db.delete_api_token(token_id)
    logger.info("api_token_deleted", username=username, token_id=str(token_id))


async def update_token_metadata(db: Db, token: str, metadata: TokenMetadata) -> None:
    username = await get_user_by_token(db, token)
    await db.update_token_metadata(username, metadata)

"""
Authentication and authorization for HOUSECALL API.

Every caller presents an API key; the key's row is the caller's account.
Administrator endpoints additionally require is_admin on that key.
"""
from fastapi import HTTPException, Security, status, Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import Optional
import bcrypt
import secrets
import logging

from api.database import get_db
from api.models import APIKey, parse_entity_id
from api.config import settings
from src.coverage.errors import NotFoundError

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(
    name=settings.api_key_header,
    auto_error=False
)


def generate_api_key() -> str:
    """
    Generate a secure random API key.

    Returns:
        str: Secure random API key (32 bytes, URL-safe)
    """
    return secrets.token_urlsafe(32)


def hash_api_key(api_key: str) -> str:
    """Hash an API key using bcrypt."""
    return bcrypt.hashpw(
        api_key.encode('utf-8'),
        bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    ).decode('utf-8')


def verify_api_key(plain_key: str, hashed_key: str) -> bool:
    """Verify an API key against its hash."""
    try:
        return bcrypt.checkpw(
            plain_key.encode('utf-8'),
            hashed_key.encode('utf-8')
        )
    except ValueError as e:
        logger.error(f"API key verification error: {e}")
        return False


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def get_api_key(
    api_key: str = Security(api_key_header),
    db: Session = Depends(get_db)
) -> Optional[APIKey]:
    """
    Validate API key from request header.

    Args:
        api_key: API key from request header
        db: Database session

    Returns:
        APIKey: Valid API key model, or None when authentication is disabled

    Raises:
        HTTPException: If API key is invalid, expired or missing
    """
    if not settings.auth_enabled:
        return None

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is required",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    api_keys = db.query(APIKey).filter(
        APIKey.is_active.is_(True)
    ).all()

    for key_obj in api_keys:
        if verify_api_key(api_key, key_obj.key_hash):
            if key_obj.expires_at and _as_utc(key_obj.expires_at) < datetime.now(timezone.utc):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="API key has expired",
                )

            key_obj.last_used_at = datetime.now(timezone.utc)
            db.commit()

            logger.info(f"API key authenticated: {key_obj.name}")
            return key_obj

    logger.warning("Invalid API key attempted")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API key",
    )


async def require_admin(api_key: Optional[APIKey] = Depends(get_api_key)) -> Optional[APIKey]:
    """
    Require an administrator key.

    With authentication disabled every caller is treated as an administrator.
    """
    if not settings.auth_enabled:
        return None

    if not api_key.is_admin:
        logger.warning(f"Non-admin key {api_key.name} attempted admin access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return api_key


def is_admin(api_key: Optional[APIKey]) -> bool:
    """True for admin keys, and for every caller when auth is disabled."""
    if not settings.auth_enabled:
        return True
    return bool(api_key and api_key.is_admin)


def create_api_key_in_db(
    db: Session,
    name: str,
    is_admin: bool = False,
    rate_limit: int = 1000,
    expires_at: datetime = None,
    metadata: dict = None
) -> tuple[str, APIKey]:
    """
    Create a new API key in the database.

    Args:
        db: Database session
        name: Name for the API key
        is_admin: Grant administrator access
        rate_limit: Rate limit for this key
        expires_at: Expiration timestamp
        metadata: Additional metadata

    Returns:
        tuple: (plain_text_key, api_key_model)
    """
    plain_key = generate_api_key()
    key_hash = hash_api_key(plain_key)

    api_key_obj = APIKey(
        key_hash=key_hash,
        name=name,
        is_admin=is_admin,
        rate_limit=rate_limit,
        expires_at=expires_at,
        extra_metadata=metadata or {}
    )

    db.add(api_key_obj)
    db.commit()
    db.refresh(api_key_obj)

    logger.info(f"Created API key: {name} (admin={is_admin})")

    # Return plain key (only time it's visible!) and model
    return plain_key, api_key_obj


def revoke_api_key(db: Session, key_id: str) -> bool:
    """
    Revoke an API key.

    Returns:
        bool: True if key was revoked
    """
    try:
        key_uuid = parse_entity_id("APIKey", key_id)
    except NotFoundError:
        return False

    api_key = db.get(APIKey, key_uuid)
    if not api_key:
        return False

    api_key.is_active = False
    db.commit()

    logger.info(f"Revoked API key: {api_key.name}")
    return True


def owner_clause(column, api_key: Optional[APIKey]):
    """SQL filter restricting rows to the caller's account."""
    if api_key is None:
        return column.is_(None)
    return column == api_key.id

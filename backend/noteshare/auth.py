"""
NoteShare Backend — Caller Identity
=====================================

What:  FastAPI dependency resolving the authenticated caller.
How:   The authentication gateway in front of this service verifies the
       session and forwards the caller's user id in a header
       (settings.auth_user_header, default X-User-ID). The id is trusted
       as-is and the matching users row is loaded.
Who:   Every route that mutates a note or reads per-user state.
"""

import logging
import uuid

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from noteshare.config import settings
from noteshare.database import get_db_session
from noteshare.exceptions import AuthenticationError, NotFoundError
from noteshare.models.user import User

logger = logging.getLogger(__name__)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Load the caller's user record.

    Raises:
        AuthenticationError: header missing or not a UUID (→ 401)
        NotFoundError:       no users row for the id (→ 404)
    """
    raw_id = request.headers.get(settings.auth_user_header, "").strip()
    if not raw_id:
        raise AuthenticationError()
    try:
        user_id = uuid.UUID(raw_id)
    except ValueError:
        logger.warning("Rejected malformed caller id header: %r", raw_id[:64])
        raise AuthenticationError(message="Invalid caller identity")

    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(resource="user", resource_id=str(user_id))
    return user

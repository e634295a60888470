import uuid
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer
from fastapi.security.http import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from storefront.core.exceptions import ForbiddenError, UnauthorizedError
from storefront.core.security import verify_token
from storefront.db.models import Cart, User
from storefront.db.session import get_db
from storefront.services.cart import get_or_create_cart

security = HTTPBearer(auto_error=False)

CART_SESSION_KEY = "cart_session_id"


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """User from the bearer token, or None for guests and bad tokens."""
    if credentials is None:
        return None

    payload = verify_token(credentials.credentials)
    if not payload or "sub" not in payload:
        return None

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise UnauthorizedError("You must be logged in")
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user


def get_cart_session_id(request: Request) -> str:
    """Guest cart id kept in the signed session cookie."""
    session_id = request.session.get(CART_SESSION_KEY)
    if not session_id:
        session_id = uuid.uuid4().hex
        request.session[CART_SESSION_KEY] = session_id
    return session_id


async def get_current_cart(
    session_id: str = Depends(get_cart_session_id),
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> Cart:
    return await get_or_create_cart(db, user_id=user.id if user else None, session_id=session_id)

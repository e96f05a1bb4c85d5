# cepetdeal/api/deps.py
"""Request identity.

Sessions are owned by the external auth provider; by the time a request
reaches the API the authenticated user's id is in the `X-User-Id` header.
"""
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.orm import Session
from .. import crud
from ..db import get_db
from ..errors import Forbidden, Unauthorized
from ..models import Role, User


def get_optional_user(
    x_user_id: Optional[int] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    if x_user_id is None:
        return None
    return crud.get_user(db, x_user_id)


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise Unauthorized()
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != Role.ADMIN:
        raise Forbidden()
    return user

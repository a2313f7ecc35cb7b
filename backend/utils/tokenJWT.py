# utils/tokenJWT.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.users import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer()

ROLE_ADMIN = "admin"
ROLE_USER = "user"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Signed token; `sub` carries the e-mail, `role` is informative only (checked against the DB)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_subject(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.info("Rejected token: %s", e)
        return None
    return payload.get("sub")


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    email = decode_subject(credentials.credentials)
    if not email:
        raise unauthorized

    # Role comes from the users table so a demotion takes effect before the token expires
    user = db.query(User).filter(func.lower(User.email) == email.lower()).first()
    if user is None:
        raise unauthorized
    return user


# Dependency factory for role based access
def role_required(*allowed_roles: str):
    def _checker(current_user: User = Depends(get_current_user)) -> User:
        if allowed_roles and (current_user.role or "").lower() not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso restrito a administradores")
        return current_user
    return _checker


require_admin = role_required(ROLE_ADMIN)

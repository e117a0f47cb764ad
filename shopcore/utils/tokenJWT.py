# utils/tokenJWT.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from shopcore.config import settings
from shopcore.database import get_db
from shopcore.models.users import User

ACCESS_TOKEN_EXPIRE_MINUTES = 60

# Authorization scheme
bearer_scheme = HTTPBearer()


# Authenticated caller as seen by the core: who it is and what it may do
@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str = "client"

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == "admin"


# Generate a new JWT access token (used by the identity service and tests)
def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


# Resolve the caller from the bearer token; the user must still exist
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        sub = payload.get("sub")
        # Ensure the user id is present in the token payload
        if sub is None:
            raise credentials_exception
        user_id = int(sub)
    except (JWTError, ValueError):
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    return Identity(user_id=user.id, role=user.role or "client")


# Dependency factory for Role-Based Access Control
def role_required(*allowed_roles):
    def _checker(current_user: Identity = Depends(get_current_user)):
        if allowed_roles and current_user.role.lower() not in {r.lower() for r in allowed_roles}:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden"
            )
        return current_user
    return _checker

from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .config import settings

ADMIN_ROLES = {"admin", "administrator"}

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: str = "user"
    name: Optional[str] = None
    token: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[dict] = None


def decode_token(token: str) -> CurrentUser:
    credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials",
                                          headers={"WWW-Authenticate": "Bearer"})
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise credentials_exception
    user_id = payload.get("userId") or payload.get("id") or payload.get("sub")
    if user_id is None:
        raise credentials_exception
    return CurrentUser(
        id=str(user_id),
        email=payload.get("email"),
        role=payload.get("role") or "user",
        name=payload.get("name") or payload.get("displayName"),
        token=token,
    )


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    return decode_token(token)


async def get_current_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role.lower() not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user

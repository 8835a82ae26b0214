import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from errors import UnauthorizedError

# Environment
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 60 * 24))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthUser(BaseModel):
    id: str
    email: str
    name: str
    role: str = "employee"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_token(data: dict, expires_minutes: int = JWT_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def token_for(user: dict) -> str:
    return create_token({
        "id": str(user["_id"]),
        "email": user["email"],
        "name": user["name"],
        "role": user.get("role", "employee"),
    })


def get_current_user(authorization: Optional[str] = Header(None)) -> AuthUser:
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise UnauthorizedError("Invalid Authorization header")
    if scheme.lower() != "bearer":
        raise UnauthorizedError("Invalid Authorization header")
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")
    if not payload.get("id"):
        raise UnauthorizedError("Invalid or expired token")
    return AuthUser(
        id=payload["id"],
        email=payload.get("email", ""),
        name=payload.get("name", ""),
        role=payload.get("role", "employee"),
    )

"""
Credentials and the access-control gate.

``current_claim`` verifies the bearer token and yields the decoded claim;
``require(endpoint)`` layers the role allow-list from ``ACCESS_RULES`` on top.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from pydantic import BaseModel

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from errors import Unauthenticated, InvalidCredential, Forbidden

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

STAFF = frozenset({"admin", "staff"})
ANYONE = frozenset({"admin", "staff", "student", "parent"})

# Endpoints not listed here are public.
ACCESS_RULES: Dict[str, FrozenSet[str]] = {
    "students.list": STAFF,
    "students.read": STAFF,
    "students.create": STAFF,
    "students.update": STAFF,
    "students.delete": STAFF,
    "students.attendance": STAFF,
    "notices.create": STAFF,
    "sms.create": STAFF,
    "sms.list": STAFF,
    "resources.create": STAFF,
    "events.create": STAFF,
    "payments.create": ANYONE,
    "payments.list": ANYONE,
    "portfolios.create": ANYONE,
    "profile.read": ANYONE,
    "profile.update": ANYONE,
    "users.list": frozenset({"admin"}),
    "users.read": STAFF,
    "users.children": frozenset({"admin"}),
    "users.delete": frozenset({"admin"}),
}


class Claim(BaseModel):
    id: str
    username: str
    role: str


# ----------------------- Utility Functions -----------------------

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Claim:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise InvalidCredential()
    if not all(payload.get(k) for k in ("id", "username", "role")):
        raise InvalidCredential()
    return Claim(id=payload["id"], username=payload["username"], role=payload["role"])


def allows(role: str, endpoint: str) -> bool:
    """True when ``role`` may call ``endpoint``; unlisted endpoints are open."""
    allowed = ACCESS_RULES.get(endpoint)
    if allowed is None:
        return True
    return role in allowed


# ----------------------- Dependencies -----------------------

def current_claim(token: Optional[str] = Depends(oauth2_scheme)) -> Claim:
    if not token:
        raise Unauthenticated()
    return decode_access_token(token)


def require(endpoint: str):
    def dependency(claim: Claim = Depends(current_claim)) -> Claim:
        if not allows(claim.role, endpoint):
            raise Forbidden()
        return claim
    return dependency

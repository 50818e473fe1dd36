import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from config import Settings, get_settings
from database import get_db
from repositories import UserRepository
from schemas import RegisterRequest, User, UserOut

logger = logging.getLogger(__name__)

JWT_ALGO = "HS256"
INVALID_CREDENTIALS = "Invalid credentials"
security = HTTPBearer(auto_error=False)


# ----------------------- Passwords -----------------------
@lru_cache
def pwd_context(rounds: int = 10) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, rounds: int = 10) -> str:
    return pwd_context(rounds).hash(password)


def verify_password(password: str, hashed: str, rounds: int = 10) -> bool:
    try:
        return pwd_context(rounds).verify(password, hashed)
    except ValueError:
        logger.warning("Stored password hash is not a recognised bcrypt hash")
        return False


@lru_cache
def _dummy_hash(rounds: int = 10) -> str:
    return hash_password("not-a-registered-password", rounds)


# ----------------------- Tokens -----------------------
def _secret(settings: Settings) -> str:
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not configured")
    return settings.jwt_secret


def create_token(identity: dict, settings: Settings, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {
        "user": {"id": identity["id"], "isAdmin": bool(identity.get("isAdmin", False))},
        "iat": now,
        "exp": now + timedelta(hours=settings.jwt_expires_hours),
    }
    return jwt.encode(payload, _secret(settings), algorithm=JWT_ALGO)


def decode_token(token: str, settings: Settings) -> dict:
    secret = _secret(settings)
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Token is not valid")
    user = payload.get("user")
    if not isinstance(user, dict) or not user.get("id"):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return user


def public_user(doc: dict) -> dict:
    return UserOut(
        id=str(doc["_id"]),
        name=doc["name"],
        email=doc["email"],
        is_admin=doc.get("isAdmin", False),
    ).model_dump(by_alias=True)


# ----------------------- Service -----------------------
class AuthService:
    def __init__(self, users: UserRepository, settings: Settings):
        self.users = users
        self.settings = settings

    def _session(self, doc: dict) -> dict:
        user = public_user(doc)
        return {"token": create_token(user, self.settings), "user": user}

    def register(self, name, email, password) -> dict:
        _secret(self.settings)
        if not name or not email or not password:
            raise HTTPException(status_code=400, detail="Name, email and password are required")
        try:
            body = RegisterRequest(name=name, email=str(email).strip().lower(), password=password)
        except ValidationError as e:
            field = e.errors()[0]["loc"][0]
            if field == "email":
                raise HTTPException(status_code=400, detail="Invalid email address")
            raise HTTPException(status_code=400, detail=f"Invalid {field}")

        if self.users.find_by_email(body.email):
            raise HTTPException(status_code=400, detail="User already exists")
        user = User(
            name=body.name,
            email=body.email,
            password=hash_password(body.password, self.settings.bcrypt_rounds),
            is_admin=False,
        )
        try:
            created = self.users.create(user)
        except DuplicateKeyError:
            raise HTTPException(status_code=400, detail="User already exists")
        logger.info("User registered: %s", body.email)
        return self._session(self.users.find_by_email(created["email"]))

    def login(self, email, password) -> dict:
        _secret(self.settings)
        if not email or not password:
            raise HTTPException(status_code=400, detail="Email and password are required")
        rounds = self.settings.bcrypt_rounds
        user = self.users.find_by_email(str(email).strip().lower())
        # Unknown emails are verified against a dummy hash; one bcrypt check per attempt.
        hashed = user.get("password", "") if user else _dummy_hash(rounds)
        if not verify_password(str(password), hashed, rounds) or not user:
            logger.info("Failed login attempt")
            raise HTTPException(status_code=400, detail=INVALID_CREDENTIALS)
        logger.info("Login successful for user %s", user["_id"])
        return self._session(user)

    def authorize(self, token: str) -> dict:
        return decode_token(token, self.settings)


# ----------------------- Dependencies -----------------------
def get_auth_service(db=Depends(get_db), settings: Settings = Depends(get_settings)) -> AuthService:
    return AuthService(UserRepository(db), settings)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_auth_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> dict:
    token = credentials.credentials if credentials else x_auth_token
    if not token:
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    return decode_token(token, settings)


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not user.get("isAdmin"):
        raise HTTPException(status_code=403, detail="Admin only")
    return user

import logging
import bcrypt
import jwt
from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr, field_validator
from typing import Literal
from learnsphere.db.database import get_db, utcnow
from learnsphere.db import records
from learnsphere.config import settings
from learnsphere.services.badges import badge_summary
from learnsphere.services.roles import AuthContext, Role, RoleHierarchy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

JWT_ALGORITHM = "HS256"

# Password policy
MIN_PASSWORD_LENGTH = 6


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    # Admins are provisioned out of band, never through self-registration
    role: Literal["LEARNER", "INSTRUCTOR"] = "LEARNER"

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("password")
    @classmethod
    def password_min_length(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_token(user_id: int, email: str, role: str = Role.LEARNER.value) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": now + timedelta(hours=settings.jwt_expiry_hours),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def _role_hierarchy(request: Request) -> RoleHierarchy:
    return getattr(request.app.state, "role_hierarchy", None) or RoleHierarchy()


async def get_current_user(request: Request, db) -> AuthContext:
    """Extract and validate the current user from the JWT token.

    The role is re-read from the database so a demotion takes effect before
    the token expires.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Empty token")

    payload = decode_token(token)
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    user = await records.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return AuthContext(
        user_id=user["id"],
        email=user["email"],
        role=user["role"] or Role.LEARNER.value,
        name=user["name"],
        hierarchy=_role_hierarchy(request),
    )


async def get_optional_user(request: Request, db) -> AuthContext | None:
    """Like get_current_user, but anonymous or bad tokens yield None."""
    if not request.headers.get("Authorization", "").lower().startswith("bearer "):
        return None
    try:
        return await get_current_user(request, db)
    except HTTPException:
        return None


# ── Convenience helpers for route-level auth ────────────────────────

def require_role(minimum: Role):
    """Return a checker that enforces a minimum role in the hierarchy.

    Usage in a route:
        user = await require_role(Role.INSTRUCTOR)(request, db)
    """
    async def _check(request: Request, db) -> AuthContext:
        user = await get_current_user(request, db)
        if not user.has_minimum_role(minimum):
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions. Required role: {minimum.value}",
            )
        return user
    return _check


def _user_payload(user: dict) -> dict:
    return {
        "id": user["id"],
        "email": user["email"],
        "name": user["name"],
        "role": user["role"],
    }


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, db=Depends(get_db)):
    email = body.email.lower()
    if await records.get_user_by_email(db, email):
        raise HTTPException(status_code=409, detail="User already exists")

    cursor = await db.execute(
        """INSERT INTO users (name, email, password_hash, role, created_at)
           VALUES (?, ?, ?, ?, ?)""",
        (body.name, email, hash_password(body.password), body.role, utcnow()),
    )
    await db.commit()
    user_id = cursor.lastrowid
    logger.info("Registered user %s as %s", user_id, body.role)

    user = {"id": user_id, "email": email, "name": body.name, "role": body.role}
    return {"user": user, "token": create_token(user_id, email, body.role)}


@router.post("/login")
async def login(body: LoginRequest, db=Depends(get_db)):
    user = await records.get_user_by_email(db, body.email)
    if not user or not verify_password(body.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return {
        "user": _user_payload(user),
        "token": create_token(user["id"], user["email"], user["role"]),
    }


@router.get("/me")
async def get_me(request: Request, db=Depends(get_db)):
    auth = await get_current_user(request, db)
    user = await records.get_user(db, auth.user_id)
    user.update(badge_summary(user["total_points"] or 0))
    return {"user": user}


@router.get("/admins")
async def list_admins(request: Request, db=Depends(get_db)):
    """Users who can be made responsible for a course."""
    await get_current_user(request, db)
    cursor = await db.execute(
        """SELECT id, name, email, avatar, role FROM users
           WHERE role IN (?, ?)
           ORDER BY name""",
        (Role.INSTRUCTOR.value, Role.ADMIN.value),
    )
    return [records.row_to_dict(row) for row in await cursor.fetchall()]

"""
Admin authentication API endpoints and password helpers
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from pydantic import BaseModel, field_validator
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mealcheck.config import get_settings
from mealcheck.database import get_db
from mealcheck.models.admin import Admin

settings = get_settings()
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/auth/login")

router = APIRouter()


# --- Password / token helpers ---

def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_admin(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Admin:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        admin_id = payload.get("sub")
        if admin_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    result = await db.execute(select(Admin).where(Admin.id == int(admin_id)))
    admin = result.scalar_one_or_none()
    if admin is None:
        raise credentials_exception
    return admin


# --- Pydantic Schemas ---

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AdminResponse(BaseModel):
    id: int
    username: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class AdminInit(BaseModel):
    username: str
    password: str

    @field_validator("username", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v


class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def new_password_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("new password must not be empty")
        return v


class UsernameChange(BaseModel):
    current_password: str
    new_username: str

    @field_validator("new_username")
    @classmethod
    def new_username_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("new username must not be empty")
        return v.strip()


# --- Endpoints ---

@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Admin).where(Admin.username == form_data.username))
    admin = result.scalar_one_or_none()
    if not admin or not verify_password(form_data.password, admin.password):
        logger.warning(f"Failed admin login for '{form_data.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"Admin '{admin.username}' logged in")
    return Token(access_token=create_access_token(data={"sub": str(admin.id)}))


@router.post("/init", response_model=AdminResponse)
async def init_admin(data: AdminInit, db: AsyncSession = Depends(get_db)):
    """Create the first admin account. Refused once any admin exists."""
    existing = await db.execute(select(func.count(Admin.id)))
    if existing.scalar():
        raise HTTPException(status_code=409, detail="An admin account already exists")

    admin = Admin(username=data.username.strip(), password=get_password_hash(data.password))
    db.add(admin)
    await db.commit()
    await db.refresh(admin)
    logger.info(f"Created admin account '{admin.username}'")
    return admin


@router.get("/me", response_model=AdminResponse)
async def read_me(current_admin: Admin = Depends(get_current_admin)):
    return current_admin


@router.post("/change-password")
async def change_password(
    data: PasswordChange,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    if not verify_password(data.current_password, current_admin.password):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    current_admin.password = get_password_hash(data.new_password)
    await db.commit()
    logger.info(f"Admin '{current_admin.username}' changed password")
    return {"message": "Password changed"}


@router.post("/change-username")
async def change_username(
    data: UsernameChange,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    if not verify_password(data.current_password, current_admin.password):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    result = await db.execute(select(Admin).where(Admin.username == data.new_username))
    taken = result.scalar_one_or_none()
    if taken and taken.id != current_admin.id:
        raise HTTPException(status_code=409, detail="Username already in use")

    old_username = current_admin.username
    current_admin.username = data.new_username
    await db.commit()
    logger.info(f"Admin '{old_username}' renamed to '{data.new_username}'")
    return {"message": "Username changed", "new_username": data.new_username}

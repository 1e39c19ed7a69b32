"""
visuluxe_vault/models/user.py — Usuários da plataforma e seus papéis.

Cada usuário tem no máximo um papel (user_roles.user_id é único).
"admin ou acima" = super_admin | admin.
"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from visuluxe_vault.database import Base, utcnow


class AppRole(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"
    SUPPORT = "support"
    ANALYST = "analyst"


ADMIN_OR_ABOVE = (AppRole.SUPER_ADMIN.value, AppRole.ADMIN.value)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class UserRole(Base):
    __tablename__ = "user_roles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=AppRole.USER.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

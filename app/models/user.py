from enum import Enum
from typing import Optional
from sqlalchemy import String, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, BigIntPK
from app.models import TimestampMixin


class UserRole(str, Enum):
    USER = "USER"
    STUDENT = "STUDENT"
    ADMIN = "ADMIN"


class User(Base, TimestampMixin):
    """
    Read-only view of the user directory. Accounts are issued by the auth
    service; bookings only need the role and contact defaults.
    """
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role_enum"), nullable=False, default=UserRole.USER)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

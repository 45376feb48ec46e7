import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from jewelcrm.database import Base


class User(Base):
    """Identity account. Owned by the identity provider, not by the engine."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Free-form metadata supplied at account creation (initial role, etc.)
    user_metadata: Mapped[dict | None] = mapped_column(JSON, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class UserProfile(Base):
    """Access-control profile bound 1:1 to an identity account.

    Never hard-deleted: deactivation flips `is_active`.
    """

    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), unique=True, nullable=False, index=True
    )
    # One of JewelryUserRole values; stored as plain text so the
    # enumeration can grow without a type migration.
    role: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    department_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("departments.id")
    )
    manager_id: Mapped[str | None] = mapped_column(String(36))
    employee_id: Mapped[str | None] = mapped_column(String(50), unique=True)
    hire_date: Mapped[date | None] = mapped_column(Date)
    termination_date: Mapped[date | None] = mapped_column(Date)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

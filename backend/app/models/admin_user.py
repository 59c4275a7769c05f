from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import generate_uuid


class AdminRole(str, enum.Enum):
    """Admin panel roles"""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    VIEWER = "viewer"  # read-only access to the quote inbox


# Roles allowed to change quote status/notes and trigger resends
QUOTE_EDITOR_ROLES = frozenset({AdminRole.SUPER_ADMIN, AdminRole.ADMIN})


class AdminUser(Base):
    """Admin panel account"""
    __tablename__ = "admin_users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)

    role = Column(
        SQLEnum(AdminRole, values_callable=lambda e: [m.value for m in e], name="adminrole"),
        default=AdminRole.ADMIN,
        nullable=False,
    )
    is_active = Column(Boolean, default=True, nullable=False)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def can_edit_quotes(self) -> bool:
        return self.role in QUOTE_EDITOR_ROLES

    def __repr__(self):
        return f"<AdminUser {self.email} ({self.role})>"

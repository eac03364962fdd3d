"""
Identity, allow-list and role models.

Key design decisions:
- `users` is the identity credential store; an identity is only ever created
  by the provisioning service, already email-confirmed
- `allowed_users` is the allow-list gating login; its secret is stored hashed
- Roles live in their own table so admin rights are re-checked server-side on
  every request instead of being trusted from a token
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint, CheckConstraint

from theatre.db.base import Base, TimestampMixin

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    email_confirmed = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class AllowedUser(Base, TimestampMixin):
    __tablename__ = "allowed_users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    credential_secret = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<AllowedUser(id={self.id}, email={self.email})>"


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=ROLE_USER)

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        CheckConstraint("role IN ('admin', 'user')", name="check_user_roles_role"),
    )

    def __repr__(self) -> str:
        return f"<UserRole(user={self.user_id}, role={self.role})>"

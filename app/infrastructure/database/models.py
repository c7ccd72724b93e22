"""
Database models for users, linked provider identities and sessions.
"""
from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from app.infrastructure.database.base import Base

# BIGINT identity on Postgres, INTEGER PRIMARY KEY (rowid alias) on SQLite
Identifier = BigInteger().with_variant(Integer(), "sqlite")

IDENTITY_UNIQUE_CONSTRAINT = "uq_oauth_provider_user"


class TimestampMixin:
    """Mixin for created_at and updated_at."""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class User(Base, TimestampMixin):
    """Local user account, created on first login."""
    __tablename__ = "users"

    id = Column(Identifier, primary_key=True, autoincrement=True)
    username = Column(Text, nullable=False)

    identities = relationship("ProviderIdentity", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan")


class ProviderIdentity(Base):
    """Link between one identity-provider account and one local user."""
    __tablename__ = "oauth"

    id = Column(Identifier, primary_key=True, autoincrement=True)
    user_id = Column(Identifier, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    provider = Column(String(50), nullable=False)
    provider_user_id = Column(String(255), nullable=False)
    access_token = Column(Text)
    refresh_token = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="identities")

    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name=IDENTITY_UNIQUE_CONSTRAINT),
    )


class Session(Base):
    """Server-side session; only the digest of its secret is stored."""
    __tablename__ = "session"

    id = Column(Identifier, primary_key=True, autoincrement=True)
    user_id = Column(Identifier, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    secret_hash = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_verified_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="sessions")

"""User ORM model."""

from datetime import datetime

from sqlalchemy import String, TIMESTAMP, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repo_gateway.database import Base, BigIntPK


class User(Base):
    """GitHub user account known to the gateway."""

    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )
    github_user_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        comment="Stable GitHub account id",
    )
    username: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    access_token: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Encrypted GitHub access token (iv:tag:ciphertext hex)",
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # --- Relationships ---
    repositories: Mapped[list["Repository"]] = relationship(  # noqa: F821
        back_populates="owner",
    )
    activities: Mapped[list["Activity"]] = relationship(  # noqa: F821
        back_populates="user",
    )

    def __repr__(self) -> str:
        return f"<User(user_id={self.user_id}, username={self.username!r})>"

"""Repository ORM model."""

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Integer, String, TIMESTAMP, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repo_gateway.database import Base, BigIntPK


class Repository(Base):
    """Local mirror of a GitHub repository, keyed by its GitHub id."""

    __tablename__ = "repositories"

    repo_id: Mapped[int] = mapped_column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )
    github_repo_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    owner_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.user_id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    language: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    star_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    fork_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
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
    owner: Mapped["User"] = relationship(  # noqa: F821
        back_populates="repositories",
    )

    def __repr__(self) -> str:
        return (
            f"<Repository(repo_id={self.repo_id}, "
            f"github_repo_id={self.github_repo_id!r}, name={self.name!r})>"
        )

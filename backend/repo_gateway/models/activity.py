"""Activity ORM model (append-only audit log)."""

import enum
from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String, TIMESTAMP, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repo_gateway.database import Base, BigIntPK


class ActivityAction(str, enum.Enum):
    """Fixed vocabulary of audited actions."""

    CREATE_REPOSITORY = "CREATE_REPOSITORY"
    UPDATE_REPOSITORY = "UPDATE_REPOSITORY"
    DELETE_REPOSITORY = "DELETE_REPOSITORY"
    PUSH_REPOSITORY = "PUSH_REPOSITORY"
    STAR_REPOSITORY = "STAR_REPOSITORY"
    FORK_REPOSITORY = "FORK_REPOSITORY"
    ADD_COLLABORATOR = "ADD_COLLABORATOR"
    REMOVE_COLLABORATOR = "REMOVE_COLLABORATOR"
    UPDATE_PROFILE = "UPDATE_PROFILE"


_ACTION_VALUES = ", ".join(f"'{a.value}'" for a in ActivityAction)


class Activity(Base):
    """One audited action performed by (or on behalf of) a user.

    Rows are never updated or deleted by the application.
    """

    __tablename__ = "activities"
    __table_args__ = (
        CheckConstraint(
            f"action IN ({_ACTION_VALUES})",
            name="ck_activities_action",
        ),
        Index("ix_activities_user_id_timestamp", "user_id", "timestamp"),
    )

    activity_id: Mapped[int] = mapped_column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.user_id"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    details: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # --- Relationships ---
    user: Mapped["User"] = relationship(  # noqa: F821
        back_populates="activities",
    )

    def __repr__(self) -> str:
        return f"<Activity(activity_id={self.activity_id}, action={self.action!r})>"

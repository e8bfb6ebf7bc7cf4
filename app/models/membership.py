"""Membership models: users enrolled in orgs, classes and groups."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import BaseModel
from app.core.permissions import Role


class MembershipMixin:
    """Columns shared by all membership tables."""

    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    role: Mapped[Role] = mapped_column(String(30), nullable=False)
    enrollment_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    enrollment_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,  # NULL means open-ended
    )


class UserOrg(MembershipMixin, BaseModel):
    """User enrolled at a district or school."""

    __tablename__ = "user_orgs"

    org_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("orgs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class UserClass(MembershipMixin, BaseModel):
    """User enrolled in a class."""

    __tablename__ = "user_classes"

    class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class UserGroup(MembershipMixin, BaseModel):
    """User enrolled in a group."""

    __tablename__ = "user_groups"

    group_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

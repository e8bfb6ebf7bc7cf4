"""Administration model and its assignments."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import BaseModel


class Administration(BaseModel):
    """An assessment administration."""

    __tablename__ = "administrations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    date_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Administration(id={self.id}, name={self.name})>"


class AdministrationOrg(BaseModel):
    """Administration assigned to a district or school."""

    __tablename__ = "administration_orgs"
    __table_args__ = (
        UniqueConstraint("administration_id", "org_id", name="uq_administration_org"),
    )

    administration_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("administrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    org_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("orgs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class AdministrationClass(BaseModel):
    """Administration assigned to a class."""

    __tablename__ = "administration_classes"
    __table_args__ = (
        UniqueConstraint("administration_id", "class_id", name="uq_administration_class"),
    )

    administration_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("administrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class AdministrationGroup(BaseModel):
    """Administration assigned to a group."""

    __tablename__ = "administration_groups"
    __table_args__ = (
        UniqueConstraint("administration_id", "group_id", name="uq_administration_group"),
    )

    administration_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("administrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    group_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

"""Org model."""

from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel
from app.core.hierarchy import OrgPath


class Org(BaseModel):
    """Org model - a node of the district/school tree.

    ``path`` holds the materialized path of org id segments from the root
    down to this org, e.g. ``<district_hex>.<school_hex>``.
    """

    __tablename__ = "orgs"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    org_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    parent_org_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("orgs.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    path: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True, index=True)

    # Relationships
    parent: Mapped["Org | None"] = relationship("Org", remote_side="Org.id")
    classes: Mapped[list["SchoolClass"]] = relationship("SchoolClass", back_populates="org")

    @classmethod
    def create(cls, name: str, org_type: str, parent: "Org | None" = None) -> "Org":
        """Build an org with its id and path assigned up front."""
        org_id = uuid4()
        if parent is None:
            path = OrgPath((org_id.hex,))
        else:
            path = OrgPath.parse(parent.path).child(org_id.hex)
        return cls(
            id=org_id,
            name=name,
            org_type=org_type,
            parent_org_id=parent.id if parent else None,
            path=str(path),
        )

    def __repr__(self) -> str:
        return f"<Org(id={self.id}, name={self.name}, type={self.org_type})>"


from app.models.school_class import SchoolClass

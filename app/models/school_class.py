"""SchoolClass model."""

from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import BaseModel
from app.core.hierarchy import OrgPath


class SchoolClass(BaseModel):
    """SchoolClass model - a leaf of the org tree, below a school."""

    __tablename__ = "classes"

    org_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("orgs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Parent org path plus this class's own segment
    path: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True, index=True)

    # Relationships
    org: Mapped["Org"] = relationship("Org", back_populates="classes")

    @classmethod
    def create(cls, name: str, org: "Org") -> "SchoolClass":
        """Build a class under *org* with its id and path assigned up front."""
        class_id = uuid4()
        return cls(
            id=class_id,
            name=name,
            org_id=org.id,
            path=str(OrgPath.parse(org.path).child(class_id.hex)),
        )

    def __repr__(self) -> str:
        return f"<SchoolClass(id={self.id}, name={self.name})>"


from app.models.org import Org

"""Group model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import BaseModel


class Group(BaseModel):
    """Group model - a flat collection of users outside the org tree."""

    __tablename__ = "groups"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name={self.name})>"

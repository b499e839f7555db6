from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from groupgate.models.base import Base


class Group(Base):
    """
    Access-controlled resource.

    Inactive groups are ignored by every access computation.
    """

    __tablename__ = "groups"

    id = Column(Integer, primary_key=True)
    name = Column(String(160), unique=True, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    note = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r} active={self.active}>"

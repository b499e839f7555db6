from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from groupgate.models.base import Base
from groupgate.security.groups.mixins import HasGroups
from groupgate.security.rbac.models import user_roles


class User(HasGroups, Base):
    """
    Reference owner type.

    Direct group access lives in `user_groups` (see UserGroup); indirect
    access comes from `roles`.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(200))
    active = Column(Boolean, default=True, nullable=False)

    roles = relationship("Role", secondary=user_roles, backref="users")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} username={self.username!r}>"

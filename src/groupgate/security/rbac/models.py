"""
RBAC Models - roles and the role-to-group access relation.

Roles are administered elsewhere; the group access resolver only reads them
through RoleGroupAccessBridge.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from groupgate.models.base import Base

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), server_default=func.now()),
    extend_existing=True,
)


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    active = Column(Boolean, default=True, nullable=False)

    group_accesses = relationship(
        "RoleGroup", back_populates="role", cascade="all, delete-orphan"
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class RoleGroup(Base):
    """Role -> group -> access level. One row per granted level."""

    __tablename__ = "role_groups"
    __table_args__ = (
        UniqueConstraint("role_id", "group_id", "access", name="uq_role_group_access"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(
        Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_id = Column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    access = Column(String(50), nullable=False)

    role = relationship("Role", back_populates="group_accesses")
    group = relationship("Group")

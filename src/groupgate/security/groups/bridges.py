"""
Role bridge interface.

Owner types that support role-based access register a RoleAccessBridge
with their GroupAccessBinding. The resolver never inspects the owner type
itself to find out whether roles are available.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Set

from sqlalchemy.orm import Session


class RoleAccessBridge(ABC):
    """Read-only access to role-derived group access."""

    @abstractmethod
    def role_ids(self, session: Session, owner_id: int) -> Set[int]:
        """Role ids held by the owner."""

    @abstractmethod
    def role_group_ids(
        self, session: Session, role_ids: Iterable[int], access: List[str]
    ) -> Set[int]:
        """Active group ids any of the (active) roles has one of the access levels to."""

    @abstractmethod
    def role_access(
        self, session: Session, owner_id: int, group_id: int, access: List[str]
    ) -> bool:
        """Whether the owner reaches the group with one of the levels via a role."""

    @abstractmethod
    def role_access_ids(self, session: Session, group_id: int, access: List[str]) -> Set[int]:
        """Owner ids reaching the group with one of the levels via a role."""

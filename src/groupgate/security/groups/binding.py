"""
Owner type registration.

A GroupAccessBinding states, once per owner type, which table stores its
direct group relations, which column on that table points at the owner, and
whether (and how) the owner type supports role-derived access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, Optional

from groupgate.exceptions import ConfigurationError
from groupgate.security.groups.bridges import RoleAccessBridge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupAccessBinding:
    owner_model: type
    through_model: type
    foreign_key: str
    role_bridge: Optional[RoleAccessBridge] = None

    @property
    def supports_roles(self) -> bool:
        return self.role_bridge is not None

    @property
    def owner_column(self) -> Any:
        return getattr(self.through_model, self.foreign_key)

    @property
    def owner_table(self) -> str:
        return self.owner_model.__tablename__


_bindings: Dict[type, GroupAccessBinding] = {}
_lock = RLock()


def register_owner_type(binding: GroupAccessBinding) -> GroupAccessBinding:
    for column in (binding.foreign_key, "group_id", "access"):
        if not hasattr(binding.through_model, column):
            raise ConfigurationError(
                f"{binding.through_model.__name__} has no column '{column}'",
                config_key="through_model",
            )
    if not hasattr(binding.owner_model, "start_group_access_buffer"):
        raise ConfigurationError(
            f"{binding.owner_model.__name__} must mix in HasGroups",
            config_key="owner_model",
        )

    with _lock:
        _bindings[binding.owner_model] = binding
    logger.debug(
        "Registered group access for %s via %s.%s (roles=%s)",
        binding.owner_model.__name__,
        binding.through_model.__tablename__,
        binding.foreign_key,
        binding.supports_roles,
    )
    return binding


def unregister_owner_type(owner_model: type) -> None:
    with _lock:
        _bindings.pop(owner_model, None)


def get_binding(owner_model: type) -> GroupAccessBinding:
    with _lock:
        for klass in owner_model.__mro__:
            binding = _bindings.get(klass)
            if binding is not None:
                return binding
    raise ConfigurationError(
        f"{owner_model.__name__} is not registered for group access",
        config_key="owner_model",
    )

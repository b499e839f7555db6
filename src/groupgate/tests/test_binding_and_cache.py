from __future__ import annotations

import pytest

from groupgate.exceptions import ConfigurationError
from groupgate.models.group import Group
from groupgate.models.user import User
from groupgate.security.groups.binding import (
    GroupAccessBinding,
    get_binding,
    register_owner_type,
    unregister_owner_type,
)
from groupgate.security.groups.cache import AccessMapCache
from groupgate.security.groups.models import UserGroup
from groupgate.security.groups.owners import USER_BINDING
from groupgate.security.groups.service import GroupAccessService


def test_user_binding_declares_through_table_and_roles():
    binding = get_binding(User)

    assert binding is USER_BINDING
    assert binding.through_model is UserGroup
    assert binding.owner_column is UserGroup.user_id
    assert binding.owner_table == "users"
    assert binding.supports_roles is True


def test_unregistered_owner_type_is_a_configuration_error():
    class Device:
        pass

    with pytest.raises(ConfigurationError):
        get_binding(Device)


def test_registration_validates_through_columns():
    with pytest.raises(ConfigurationError):
        register_owner_type(
            GroupAccessBinding(owner_model=User, through_model=UserGroup, foreign_key="owner_id")
        )

    with pytest.raises(ConfigurationError):
        register_owner_type(
            GroupAccessBinding(owner_model=Group, through_model=UserGroup, foreign_key="user_id")
        )

    assert get_binding(User) is USER_BINDING


def test_subclass_resolves_parent_binding():
    class Probe:
        group_access_buffer = None

        def start_group_access_buffer(self):  # pragma: no cover
            pass

    class ChildProbe(Probe):
        pass

    binding = register_owner_type(
        GroupAccessBinding(owner_model=Probe, through_model=UserGroup, foreign_key="user_id")
    )
    try:
        assert get_binding(ChildProbe) is binding
        assert binding.supports_roles is False
    finally:
        unregister_owner_type(Probe)

    with pytest.raises(ConfigurationError):
        get_binding(ChildProbe)


def test_service_defaults_to_user_owner(session):
    service = GroupAccessService(session)

    assert service.binding is USER_BINDING
    assert service.cache is None


def test_cache_returns_copies_and_invalidates_per_owner():
    cache = AccessMapCache()
    cache.set("users", 1, "id", {10: ["read"]})
    cache.set("users", 1, "name", {"Sales": ["read"]})
    cache.set("users", 2, "id", {10: ["write"]})

    first = cache.get("users", 1, "id")
    first[10].append("write")
    assert cache.get("users", 1, "id") == {10: ["read"]}

    cache.invalidate("users", 1)
    assert cache.get("users", 1, "id") is None
    assert cache.get("users", 1, "name") is None
    assert cache.get("users", 2, "id") == {10: ["write"]}

    cache.invalidate("users", None)
    cache.invalidate("users", 99)
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


def test_cache_rejects_values_read_before_invalidation():
    cache = AccessMapCache()
    before = cache.generation("users", 1)

    cache.invalidate("users", 1)

    assert cache.set("users", 1, "id", {10: ["read"]}, generation=before) is False
    assert cache.get("users", 1, "id") is None

    current = cache.generation("users", 1)
    assert cache.set("users", 1, "id", {10: ["read"]}, generation=current) is True

    cache.clear()
    assert cache.set("users", 1, "id", {10: ["read"]}, generation=current) is False
    assert len(cache) == 0

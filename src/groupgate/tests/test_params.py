from __future__ import annotations

from types import SimpleNamespace

import pytest

from groupgate.exceptions import InvalidArgumentError
from groupgate.security.groups.params import (
    FULL_ACCESS,
    ensure_group_access_list_parameter,
    ensure_group_id_parameter,
    ensure_owner_id_parameter,
)


@pytest.mark.parametrize(
    "access, expected",
    [
        ("read", ["read", "full"]),
        ("full", ["full"]),
        (["read", "write"], ["read", "write", "full"]),
        (["full", "read"], ["full", "read"]),
        (["read", "read", "write", "full", "full"], ["read", "write", "full"]),
        (("change",), ["change", "full"]),
    ],
)
def test_access_list_always_contains_full_once(access, expected):
    normalized = ensure_group_access_list_parameter(access)

    assert normalized == expected
    assert normalized.count(FULL_ACCESS) == 1


def test_access_list_does_not_mutate_input():
    requested = ["read"]

    ensure_group_access_list_parameter(requested)

    assert requested == ["read"]


@pytest.mark.parametrize("access", ["", "  ", [], (), None, 3, {"read"}, ["read", None], ["read", ""]])
def test_access_list_rejects_malformed_specifiers(access):
    with pytest.raises(InvalidArgumentError) as exc:
        ensure_group_access_list_parameter(access)

    assert exc.value.code == "INVALID_ARGUMENT"
    assert exc.value.details["field"] == "access"


def test_group_id_accepts_int_and_objects():
    assert ensure_group_id_parameter(5) == 5
    assert ensure_group_id_parameter(SimpleNamespace(id=9)) == 9


@pytest.mark.parametrize("value", [None, "1", True, 1.0, SimpleNamespace(id=None), SimpleNamespace(name="x")])
def test_group_id_rejects_unresolvable_values(value):
    with pytest.raises(InvalidArgumentError) as exc:
        ensure_group_id_parameter(value)

    assert exc.value.field == "group_id"


def test_owner_id_reports_owner_field():
    assert ensure_owner_id_parameter(SimpleNamespace(id=7)) == 7

    with pytest.raises(InvalidArgumentError) as exc:
        ensure_owner_id_parameter(SimpleNamespace(id=None))

    assert exc.value.to_dict()["details"]["field"] == "owner_id"

"""
Parameter normalization shared by every group access query and write.
"""

from __future__ import annotations

from typing import Any, List, Sequence, Union

from groupgate.exceptions import InvalidArgumentError

FULL_ACCESS = "full"

AccessParam = Union[str, Sequence[str]]


def ensure_group_access_list_parameter(access: AccessParam) -> List[str]:
    """
    Normalize a single access level or a list of levels.

    Returns a de-duplicated list (first occurrence order kept) that always
    contains FULL_ACCESS. The input is never mutated.

    >>> ensure_group_access_list_parameter("read")
    ['read', 'full']
    >>> ensure_group_access_list_parameter(["read", "write", "read"])
    ['read', 'write', 'full']
    """
    if isinstance(access, str):
        levels: Sequence[Any] = [access]
    elif isinstance(access, (list, tuple)):
        levels = access
    else:
        raise InvalidArgumentError(
            "access must be a string or a list of strings",
            field="access",
            value=repr(access),
        )

    if not levels:
        raise InvalidArgumentError("access must not be empty", field="access")

    normalized: List[str] = []
    for level in levels:
        if not isinstance(level, str) or not level.strip():
            raise InvalidArgumentError(
                "access levels must be non-empty strings",
                field="access",
                value=repr(level),
            )
        if level not in normalized:
            normalized.append(level)

    if FULL_ACCESS not in normalized:
        normalized.append(FULL_ACCESS)
    return normalized


def _ensure_id(value: Any, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value

    ident = getattr(value, "id", None)
    if isinstance(ident, int) and not isinstance(ident, bool):
        return ident

    raise InvalidArgumentError(
        f"{field} must be an integer id or an object with an integer id",
        field=field,
        value=repr(value),
    )


def ensure_group_id_parameter(group_or_id: Any) -> int:
    return _ensure_id(group_or_id, "group_id")


def ensure_owner_id_parameter(owner_or_id: Any) -> int:
    return _ensure_id(owner_or_id, "owner_id")

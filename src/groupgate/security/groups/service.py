"""
Group access resolution and replacement.

Reads combine direct owner -> group relations with role-derived access
(when the owner type registered a role bridge). Writes are two-phase:
stage a map of grants on the owner, then commit() replaces every direct
relation of that owner inside one SAVEPOINT.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy.orm import Session

from groupgate.config import get_settings
from groupgate.exceptions import InvalidArgumentError
from groupgate.models.group import Group
from groupgate.security.groups.binding import GroupAccessBinding, get_binding
from groupgate.security.groups.cache import (
    AccessMapCache,
    cached_access_map,
    defer_access_map,
    get_access_map_cache,
    invalidate_access_maps,
)
from groupgate.security.groups.params import (
    AccessParam,
    ensure_group_access_list_parameter,
    ensure_group_id_parameter,
    ensure_owner_id_parameter,
)

logger = logging.getLogger(__name__)

AccessMapInput = Mapping[Any, Any]


class GroupAccessService:
    def __init__(
        self,
        session: Session,
        owner_model: Optional[type] = None,
        *,
        cache: Optional[AccessMapCache] = None,
        imply_full_on_write: Optional[bool] = None,
    ):
        if owner_model is None:
            from groupgate.security.groups.owners import USER_BINDING

            owner_model = USER_BINDING.owner_model
        else:
            # Registers the built-in owner types.
            from groupgate.security.groups import owners as _owners  # noqa: F401

        settings = get_settings()
        self.session = session
        self.binding: GroupAccessBinding = get_binding(owner_model)
        self.cache = cache if cache is not None else get_access_map_cache()
        self.imply_full_on_write = (
            settings.GROUP_ACCESS_WRITE_IMPLIES_FULL
            if imply_full_on_write is None
            else imply_full_on_write
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def has_access(self, owner: Any, group: Any, access: AccessParam) -> bool:
        """
        Check a Group (or Group id) for the given access level(s).

        Direct relations are checked first; role-derived access is only
        consulted when no direct relation matches.

        Example:
            service.has_access(user, 1, "read")
            service.has_access(user.id, group, ["read", "create"])
        """
        access = ensure_group_access_list_parameter(access)
        group_id = ensure_group_id_parameter(group)
        owner_id = ensure_owner_id_parameter(owner)

        through = self.binding.through_model
        direct = (
            self.session.query(through.id)
            .join(Group, Group.id == through.group_id)
            .filter(
                self.binding.owner_column == owner_id,
                through.group_id == group_id,
                through.access.in_(access),
                Group.active.is_(True),
            )
        )
        if self.session.query(direct.exists()).scalar():
            return True

        if not self.binding.supports_roles:
            return False
        return self.binding.role_bridge.role_access(self.session, owner_id, group_id, access)

    def group_ids_access(self, owner: Any, access: AccessParam) -> Set[int]:
        """Ids of active Groups the owner reaches with the access level(s), directly or via roles."""
        access = ensure_group_access_list_parameter(access)
        owner_id = ensure_owner_id_parameter(owner)

        through = self.binding.through_model
        rows = (
            self.session.query(through.group_id)
            .join(Group, Group.id == through.group_id)
            .filter(
                self.binding.owner_column == owner_id,
                through.access.in_(access),
                Group.active.is_(True),
            )
            .distinct()
            .all()
        )
        group_ids = {row[0] for row in rows}

        if not self.binding.supports_roles:
            return group_ids

        bridge = self.binding.role_bridge
        role_ids = bridge.role_ids(self.session, owner_id)
        return group_ids | bridge.role_group_ids(self.session, role_ids, access)

    def groups_access(self, owner: Any, access: AccessParam) -> List[Group]:
        group_ids = self.group_ids_access(owner, access)
        if not group_ids:
            return []
        return (
            self.session.query(Group)
            .filter(Group.id.in_(group_ids))
            .order_by(Group.id)
            .all()
        )

    def groups_with_access(self, owner: Any, *access: Any) -> List[Tuple[Group, str]]:
        """
        Groups the owner is directly related to, paired with the relation's
        access level. Inactive groups are included.

        Without access arguments every relation is returned; otherwise only
        relations with one of the given levels (plus 'full').

        Example:
            service.groups_with_access(user)
            service.groups_with_access(user, "read", "write")
        """
        owner_id = ensure_owner_id_parameter(owner)
        through = self.binding.through_model

        query = (
            self.session.query(Group, through.access)
            .join(through, through.group_id == Group.id)
            .filter(self.binding.owner_column == owner_id)
        )
        if access:
            levels = access[0] if len(access) == 1 and not isinstance(access[0], str) else list(access)
            query = query.filter(through.access.in_(ensure_group_access_list_parameter(levels)))

        return [(group, level) for group, level in query.order_by(Group.id, through.id).all()]

    def group_ids_access_map(self, owner: Any) -> Dict[int, List[str]]:
        """
        Map of Group id to the owner's direct access levels.

        Example:
            {1: ['full'], 42: ['read', 'write']}
        """
        return self._groups_access_map(owner, "id")

    def group_names_access_map(self, owner: Any) -> Dict[str, List[str]]:
        """
        Map of Group name to the owner's direct access levels.

        Example:
            {'Users': ['full'], 'Support': ['read', 'write']}
        """
        return self._groups_access_map(owner, "name")

    def _groups_access_map(self, owner: Any, key: str) -> Dict[Any, List[str]]:
        # Direct relations only; role-derived access is not part of the map.
        owner_id = ensure_owner_id_parameter(owner)
        owner_table = self.binding.owner_table
        if self.cache is not None:
            cached = cached_access_map(self.session, self.cache, owner_table, owner_id, key)
            if cached is not None:
                return cached
            generation = self.cache.generation(owner_table, owner_id)

        through = self.binding.through_model
        rows = (
            self.session.query(getattr(Group, key), through.access)
            .join(through, through.group_id == Group.id)
            .filter(self.binding.owner_column == owner_id, Group.active.is_(True))
            .order_by(through.id)
            .all()
        )
        access_map: Dict[Any, List[str]] = {}
        for identifier, level in rows:
            access_map.setdefault(identifier, []).append(level)

        if self.cache is not None:
            defer_access_map(
                self.session, self.cache, owner_table, owner_id, key, access_map, generation
            )
        return access_map

    # ------------------------------------------------------------------
    # Class-level reads
    # ------------------------------------------------------------------

    def owner_ids_with_access(self, group: Any, access: AccessParam) -> Set[int]:
        """Ids of owners reaching the Group with the access level(s), directly or via roles."""
        access = ensure_group_access_list_parameter(access)
        group_id = ensure_group_id_parameter(group)

        through = self.binding.through_model
        rows = (
            self.session.query(self.binding.owner_column)
            .join(Group, Group.id == through.group_id)
            .filter(
                through.group_id == group_id,
                through.access.in_(access),
                Group.active.is_(True),
            )
            .distinct()
            .all()
        )
        owner_ids = {row[0] for row in rows}

        if not self.binding.supports_roles:
            return owner_ids
        return owner_ids | self.binding.role_bridge.role_access_ids(self.session, group_id, access)

    def owners_with_access(self, group: Any, access: AccessParam) -> List[Any]:
        owner_ids = self.owner_ids_with_access(group, access)
        if not owner_ids:
            return []
        owner_model = self.binding.owner_model
        return (
            self.session.query(owner_model)
            .filter(owner_model.id.in_(owner_ids))
            .order_by(owner_model.id)
            .all()
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def stage_group_ids_access_map(
        self, owner: Any, id_access_map: AccessMapInput, *, replace: bool = False
    ) -> None:
        """
        Stage grants from a map of Group id to access on the owner.

        Successive calls accumulate until commit(); `replace=True` discards
        whatever is already staged (including grants left by a failed commit).
        """
        self._stage_access_map(owner, id_access_map, replace=replace)

    def stage_group_names_access_map(
        self, owner: Any, name_access_map: AccessMapInput, *, replace: bool = False
    ) -> None:
        self._stage_access_map(
            owner, name_access_map, resolve=self._group_id_by_name, replace=replace
        )

    def set_group_ids_access_map(self, owner: Any, id_access_map: AccessMapInput) -> AccessMapInput:
        """
        Replace the owner's direct relations with the given map of Group id to access.

        Grants staged earlier (e.g. by a failed commit) are discarded first.
        With GROUP_ACCESS_WRITE_IMPLIES_FULL enabled (the default) every
        written group also gets 'full', and since every check also accepts
        'full', ANY grant written here satisfies EVERY access level on that
        group. Disable the setting to store exactly the given levels.

        Example:
            service.set_group_ids_access_map(user, {1: 'full', 42: ['read', 'write']})
        """
        self.stage_group_ids_access_map(owner, id_access_map, replace=True)
        if owner.id is not None:
            self.commit(owner)
        return id_access_map

    def set_group_names_access_map(
        self, owner: Any, name_access_map: AccessMapInput
    ) -> AccessMapInput:
        """
        Replace the owner's direct relations with the given map of Group name to access.

        Same replacement and 'full' semantics as set_group_ids_access_map().
        Unknown names are staged with no group id and make the commit fail.
        """
        self.stage_group_names_access_map(owner, name_access_map, replace=True)
        if owner.id is not None:
            self.commit(owner)
        return name_access_map

    def commit(self, owner: Any) -> bool:
        """
        Replace all direct relations of a persisted owner with its staged grants.

        Returns False when nothing is staged. The delete and the bulk insert
        share one SAVEPOINT: if the insert fails, the previous relations are
        restored, the staged grants are kept, and the store error propagates.
        """
        self._ensure_owner_instance(owner)
        if not owner.has_pending_group_access():
            return False
        if owner.id is None:
            raise InvalidArgumentError(
                "owner must be persisted before committing group access",
                field="owner_id",
            )

        owner_id = owner.id
        entries = self._stamp_entries(owner_id, owner.group_access_buffer)

        with self.session.begin_nested():
            removed = self._delete_relations(owner_id)
            if entries:
                self.session.bulk_insert_mappings(self.binding.through_model, entries)

        owner.clear_group_access_buffer()
        self._invalidate(owner_id)
        logger.info(
            "Replaced group access for %s %s: %d relation(s) removed, %d created",
            self.binding.owner_table,
            owner_id,
            removed,
            len(entries),
        )
        return True

    def destroy_group_relations(self, owner: Any) -> int:
        owner_id = ensure_owner_id_parameter(owner)
        removed = self._delete_relations(owner_id)
        self._invalidate(owner_id)
        return removed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _stage_access_map(
        self,
        owner: Any,
        access_map: AccessMapInput,
        resolve: Optional[Callable[[Any], Optional[int]]] = None,
        replace: bool = False,
    ) -> None:
        self._ensure_owner_instance(owner)
        if not isinstance(access_map, Mapping):
            raise InvalidArgumentError("access map must be a mapping", field="access_map")

        staged: List[Dict[str, Any]] = []
        for group_identifier, accesses in access_map.items():
            group_id = resolve(group_identifier) if resolve else group_identifier
            for level in self._write_levels(accesses):
                staged.append({"group_id": group_id, "access": level})

        if replace:
            owner.clear_group_access_buffer()
        buffer = owner.start_group_access_buffer()
        buffer.extend(staged)
        logger.debug(
            "Staged %d group grant(s) for %s %s",
            len(staged),
            self.binding.owner_table,
            owner.id,
        )

    def _write_levels(self, accesses: Any) -> List[str]:
        if self.imply_full_on_write:
            return ensure_group_access_list_parameter(accesses)

        levels = ensure_group_access_list_parameter(accesses)
        requested = [accesses] if isinstance(accesses, str) else list(accesses)
        return [level for level in levels if level in requested]

    def _stamp_entries(
        self, owner_id: int, buffer: Iterable[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        foreign_key = self.binding.foreign_key
        seen: Set[Tuple[Any, str]] = set()
        entries: List[Dict[str, Any]] = []
        for entry in buffer:
            marker = (entry["group_id"], entry["access"])
            if marker in seen:
                continue
            seen.add(marker)
            entries.append(
                {foreign_key: owner_id, "group_id": entry["group_id"], "access": entry["access"]}
            )
        return entries

    def _group_id_by_name(self, name: Any) -> Optional[int]:
        row = (
            self.session.query(Group.id)
            .filter(Group.name == name)
            .order_by(Group.id)
            .first()
        )
        return row[0] if row else None

    def _delete_relations(self, owner_id: int) -> int:
        return (
            self.session.query(self.binding.through_model)
            .filter(self.binding.owner_column == owner_id)
            .delete(synchronize_session=False)
        )

    def _invalidate(self, owner_id: int) -> None:
        if self.cache is not None:
            invalidate_access_maps(self.session, self.cache, self.binding.owner_table, owner_id)

    def _ensure_owner_instance(self, owner: Any) -> None:
        if not isinstance(owner, self.binding.owner_model):
            raise InvalidArgumentError(
                f"owner must be a {self.binding.owner_model.__name__} instance",
                field="owner",
                value=repr(owner),
            )

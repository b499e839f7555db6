"""
Process-wide cache of owner access maps.

The cache only ever holds committed state: a map read inside a transaction
is queued on the Session and stored after that transaction commits, and
dropped if it rolls back. Owners whose relations were rewritten in a
Session bypass the cache until that Session commits. Changing a Group's
`active` flag or name (or deleting it) clears every cache.
"""

from __future__ import annotations

import logging
import weakref
from threading import Lock, RLock
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, object_session

from groupgate.config import get_settings
from groupgate.models.group import Group

logger = logging.getLogger(__name__)

AccessMap = Dict[Any, List[str]]
Generation = Tuple[int, int]
_CacheKey = Tuple[str, int, str]
_OwnerKey = Tuple[str, int]

_PENDING_KEY = "groupgate_access_map_pending"
_DIRTY_OWNERS_KEY = "groupgate_access_map_dirty_owners"
_GROUPS_CHANGED_KEY = "groupgate_access_map_groups_changed"
_REGISTER_LOCK = Lock()
_REGISTERED = False

_caches: "weakref.WeakSet[AccessMapCache]" = weakref.WeakSet()


class AccessMapCache:
    """
    In-process cache of owner access maps.

    Keyed by (owner table, owner id, key column). Values are copied on the
    way in and out so callers cannot mutate cached state. Every
    invalidation bumps the owner's generation; a `set` carrying an older
    generation is ignored.
    """

    def __init__(self) -> None:
        self._entries: Dict[_CacheKey, AccessMap] = {}
        self._generations: Dict[_OwnerKey, int] = {}
        self._epoch = 0
        self._lock = RLock()
        _caches.add(self)

    def generation(self, owner_table: str, owner_id: int) -> Generation:
        with self._lock:
            return self._epoch, self._generations.get((owner_table, owner_id), 0)

    def get(self, owner_table: str, owner_id: int, key: str) -> Optional[AccessMap]:
        with self._lock:
            cached = self._entries.get((owner_table, owner_id, key))
            if cached is None:
                return None
            return {identifier: list(levels) for identifier, levels in cached.items()}

    def set(
        self,
        owner_table: str,
        owner_id: int,
        key: str,
        access_map: AccessMap,
        generation: Optional[Generation] = None,
    ) -> bool:
        with self._lock:
            if generation is not None and generation != self.generation(owner_table, owner_id):
                return False
            self._entries[(owner_table, owner_id, key)] = {
                identifier: list(levels) for identifier, levels in access_map.items()
            }
            return True

    def invalidate(self, owner_table: str, owner_id: Optional[int]) -> None:
        if owner_id is None:
            return
        with self._lock:
            owner = (owner_table, owner_id)
            self._generations[owner] = self._generations.get(owner, 0) + 1
            stale = [k for k in self._entries if k[:2] == owner]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("Invalidated %d access map(s) for %s:%s", len(stale), owner_table, owner_id)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._generations.clear()
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


access_map_cache = AccessMapCache()


def get_access_map_cache() -> Optional[AccessMapCache]:
    if get_settings().GROUP_ACCESS_CACHE_ENABLED:
        return access_map_cache
    return None


# ----------------------------------------------------------------------
# Session-bound access
# ----------------------------------------------------------------------


def _bypasses_cache(session: Session, owner_table: str, owner_id: int) -> bool:
    if session.info.get(_GROUPS_CHANGED_KEY):
        return True
    return (owner_table, owner_id) in session.info.get(_DIRTY_OWNERS_KEY, ())


def cached_access_map(
    session: Session, cache: AccessMapCache, owner_table: str, owner_id: int, key: str
) -> Optional[AccessMap]:
    """Cached map for the owner, or None on a miss or when this Session must not use it."""
    if _bypasses_cache(session, owner_table, owner_id):
        return None
    return cache.get(owner_table, owner_id, key)


def defer_access_map(
    session: Session,
    cache: AccessMapCache,
    owner_table: str,
    owner_id: int,
    key: str,
    access_map: AccessMap,
    generation: Generation,
) -> None:
    """
    Queue a freshly read map for storage once the Session commits.

    `generation` must be taken before the map was read, so a concurrent
    invalidation makes the queued value stale.
    """
    if _bypasses_cache(session, owner_table, owner_id):
        return
    _ensure_session_hooks()
    pending: List[Tuple[Any, ...]] = session.info.setdefault(_PENDING_KEY, [])
    snapshot = {identifier: list(levels) for identifier, levels in access_map.items()}
    pending.append(("set", cache, owner_table, owner_id, key, snapshot, generation))


def invalidate_access_maps(
    session: Session, cache: AccessMapCache, owner_table: str, owner_id: int
) -> None:
    """
    Drop the owner's cached maps now and again after the Session commits.

    Until then the owner bypasses the cache in this Session.
    """
    cache.invalidate(owner_table, owner_id)
    _ensure_session_hooks()
    dirty: Set[_OwnerKey] = session.info.setdefault(_DIRTY_OWNERS_KEY, set())
    dirty.add((owner_table, owner_id))
    pending: List[Tuple[Any, ...]] = session.info.setdefault(_PENDING_KEY, [])
    pending.append(("invalidate", cache, owner_table, owner_id))


def invalidate_all_access_maps(session: Optional[Session]) -> None:
    """Clear every cache now and, when bound to a Session, again after it commits."""
    for cache in list(_caches):
        cache.clear()
    if session is None:
        return
    _ensure_session_hooks()
    session.info[_GROUPS_CHANGED_KEY] = True
    pending: List[Tuple[Any, ...]] = session.info.setdefault(_PENDING_KEY, [])
    pending.append(("clear",))


def _ensure_session_hooks() -> None:
    global _REGISTERED
    if _REGISTERED:
        return
    with _REGISTER_LOCK:
        if _REGISTERED:
            return
        event.listen(Session, "after_commit", _after_commit)
        event.listen(Session, "after_transaction_end", _after_transaction_end)
        _REGISTERED = True


def _after_commit(session: Session) -> None:
    # Also dispatched for SAVEPOINT releases; only the outermost commit counts.
    if session.in_nested_transaction():
        return
    pending: List[Tuple[Any, ...]] = session.info.pop(_PENDING_KEY, [])
    session.info.pop(_DIRTY_OWNERS_KEY, None)
    session.info.pop(_GROUPS_CHANGED_KEY, None)
    for op in pending:
        if op[0] == "set":
            _, cache, owner_table, owner_id, key, access_map, generation = op
            cache.set(owner_table, owner_id, key, access_map, generation=generation)
        elif op[0] == "invalidate":
            _, cache, owner_table, owner_id = op
            cache.invalidate(owner_table, owner_id)
        else:
            for cache in list(_caches):
                cache.clear()


def _after_transaction_end(session: Session, transaction) -> None:  # type: ignore[no-untyped-def]
    # Outermost transaction rolled back or closed: queued maps were never committed.
    if transaction.parent is not None:
        return
    session.info.pop(_PENDING_KEY, None)
    session.info.pop(_DIRTY_OWNERS_KEY, None)
    session.info.pop(_GROUPS_CHANGED_KEY, None)


@event.listens_for(Group, "after_update")
def _group_updated(mapper, connection, target: Group) -> None:
    state = inspect(target)
    if state.attrs.active.history.has_changes() or state.attrs.name.history.has_changes():
        invalidate_all_access_maps(object_session(target))


@event.listens_for(Group, "after_delete")
def _group_deleted(mapper, connection, target: Group) -> None:
    invalidate_all_access_maps(object_session(target))

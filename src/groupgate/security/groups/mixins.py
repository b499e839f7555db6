from __future__ import annotations

from typing import Any, Dict, List, Optional


class HasGroups:
    """
    Mixin for owner models that can hold direct group access.

    Grants are staged on the instance and written by
    GroupAccessService.commit() once the owner has an id.
    `group_access_buffer` is None when nothing is staged; an empty list
    means "replace with no relations".
    """

    group_access_buffer = None

    def start_group_access_buffer(self) -> List[Dict[str, Any]]:
        if self.group_access_buffer is None:
            self.group_access_buffer = []
        return self.group_access_buffer

    def has_pending_group_access(self) -> bool:
        return self.group_access_buffer is not None

    def clear_group_access_buffer(self) -> Optional[List[Dict[str, Any]]]:
        buffer, self.group_access_buffer = self.group_access_buffer, None
        return buffer

"""Thread-safe FIFO of roles waiting to be handled."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Iterator

log = logging.getLogger(__name__)


class RoleList:
    """A locked queue of roles; :meth:`erase` uninitialises what is left."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._roles: deque[Any] = deque()

    def push(self, role: Any) -> None:
        """Append *role*; None is ignored."""
        if role is None:
            return
        with self._lock:
            self._roles.append(role)

    def pop(self) -> Any | None:
        """Remove and return the oldest role, or None when empty."""
        with self._lock:
            return self._roles.popleft() if self._roles else None

    def erase(self) -> None:
        """Call ``uninit()`` on every queued role and empty the list."""
        with self._lock:
            log.debug("[%x]RoleList.erase, count=%d.", id(self), len(self._roles))
            roles = list(self._roles)
            self._roles.clear()
        for role in roles:
            role.uninit()

    def __len__(self) -> int:
        with self._lock:
            return len(self._roles)

    def __iter__(self) -> Iterator[Any]:
        with self._lock:
            return iter(list(self._roles))
"""
Campus Guardian — in-flight action guard

One user may not run the same action twice at once (double-clicked submit,
repeated wellness assignment). The second attempt is refused while the first
is still pending.
"""
import threading
from contextlib import contextmanager
from typing import Hashable, Iterator, Set

from .errors import Conflict


class InFlightGuard:

    def __init__(self):
        self._pending: Set[Hashable] = set()
        self._lock = threading.Lock()

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._lock:
            if key in self._pending:
                raise Conflict("This action is already in progress.")
            self._pending.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._pending.discard(key)

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._pending

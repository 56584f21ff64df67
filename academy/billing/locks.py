from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator


@dataclass
class PlayerLocks:
    """
    One mutex per player id, alive only while someone holds or waits on it.

    Registrations for the same player are linearized; different players
    never wait on each other. An entry is dropped when its last holder
    leaves, so the registry only ever holds players with a registration
    in flight. Locks are process-local: running several workers against
    one database needs the lock moved into the store.
    """

    _locks: Dict[int, threading.Lock] = field(default_factory=dict, init=False, repr=False)
    _users: Dict[int, int] = field(default_factory=dict, init=False, repr=False)
    _registry_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _checkout(self, player_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(player_id)
            if lock is None:
                lock = self._locks[player_id] = threading.Lock()
            self._users[player_id] = self._users.get(player_id, 0) + 1
            return lock

    def _checkin(self, player_id: int) -> None:
        with self._registry_lock:
            self._users[player_id] -= 1
            if self._users[player_id] == 0:
                del self._users[player_id]
                del self._locks[player_id]

    def locked(self, player_id: int) -> bool:
        with self._registry_lock:
            lock = self._locks.get(player_id)
            return lock is not None and lock.locked()

    @contextmanager
    def hold(self, player_id: int) -> Iterator[None]:
        lock = self._checkout(player_id)
        try:
            with lock:
                yield
        finally:
            self._checkin(player_id)


PLAYER_LOCKS = PlayerLocks()

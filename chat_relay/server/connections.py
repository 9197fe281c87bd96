"""Live connections and the identities bound to them."""
import threading
from typing import Dict, Hashable, List, Optional, Set


class ConnectionRegistry:
    """Tracks every open connection and which nickname, if any, it speaks for.

    Connections are opaque hashable handles. A connection is bound to at most
    one identity; an identity may have any number of connections.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._live: Set[Hashable] = set()
        self._identity_by_connection: Dict[Hashable, str] = {}
        self._connections_by_identity: Dict[str, Set[Hashable]] = {}

    def open(self, connection: Hashable) -> None:
        with self._lock:
            self._live.add(connection)

    def bind(self, connection: Hashable, identity: str) -> None:
        with self._lock:
            self._live.add(connection)
            self._detach(connection)
            self._identity_by_connection[connection] = identity
            self._connections_by_identity.setdefault(identity, set()).add(connection)

    def unbind(self, connection: Hashable) -> Optional[str]:
        """Forget ``connection``; returns the identity it was bound to."""
        with self._lock:
            self._live.discard(connection)
            return self._detach(connection)

    def _detach(self, connection: Hashable) -> Optional[str]:
        identity = self._identity_by_connection.pop(connection, None)
        if identity is not None:
            peers = self._connections_by_identity.get(identity)
            if peers is not None:
                peers.discard(connection)
                if not peers:
                    del self._connections_by_identity[identity]
        return identity

    def connections_for(self, identity: str) -> Set[Hashable]:
        with self._lock:
            return set(self._connections_by_identity.get(identity, ()))

    def identity_for(self, connection: Hashable) -> Optional[str]:
        with self._lock:
            return self._identity_by_connection.get(connection)

    def is_online(self, identity: str) -> bool:
        with self._lock:
            return identity in self._connections_by_identity

    def online(self) -> Set[str]:
        with self._lock:
            return set(self._connections_by_identity)

    def authenticated(self, excluding: Optional[str] = None) -> Dict[str, List[Hashable]]:
        """Bound connections grouped by identity, optionally skipping one identity."""
        with self._lock:
            return {
                identity: list(connections)
                for identity, connections in self._connections_by_identity.items()
                if identity != excluding
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._live)

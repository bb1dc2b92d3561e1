from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from .channels import ChannelDirectory
from .config import ServerConfig
from .identity import IdentityStore
from .registry import NicknameRegistry

if TYPE_CHECKING:
    from .connection import Connection


class Hub:
    """
    Shared state for one server instance.

    Owns the nickname registry, the channel directory and the identity store.
    Every command handler, registration and teardown runs with ``state_lock``
    held, so handlers observe and mutate the registry and directory one at a
    time. Replies are only queued while the lock is held; connections with
    queued output are collected in ``_outgoing`` and written out by whichever
    thread calls ``flush_outgoing`` after releasing the lock.
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        *,
        identities: IdentityStore | None = None,
    ) -> None:
        self.config = config or ServerConfig()
        self.log = logging.getLogger("hector.hub")

        # Every connection thread takes this before touching shared state.
        self.state_lock = threading.RLock()

        self.nicknames = NicknameRegistry(self)
        self.channels = ChannelDirectory(self)
        self.identities = identities or IdentityStore(self.config.identities_path)

        self._outgoing: dict[Connection, None] = {}

    def queue_flush(self, connection: Connection) -> None:
        with self.state_lock:
            self._outgoing[connection] = None

    def flush_outgoing(self) -> None:
        """Write every queued reply. Must be called without ``state_lock`` held."""
        with self.state_lock:
            pending = list(self._outgoing)
            self._outgoing.clear()

        if self.log.isEnabledFor(logging.DEBUG) and pending:
            self.log.debug("Flushing %d connection(s)", len(pending))

        for connection in pending:
            connection.flush()

    def clear_all(self) -> None:
        """Forget all sessions and channels. Called during server shutdown."""
        with self.state_lock:
            self.nicknames.clear_all()
            self.channels.clear_all()
            self._outgoing.clear()

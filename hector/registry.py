"""Process-wide nickname directory for connected sessions."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .constants import NICKNAME_PATTERN
from .errors import ErroneousNickname, NicknameInUse, NoSuchNickOrChannel

if TYPE_CHECKING:
    from .connection import Connection
    from .hub import Hub
    from .identity import Identity
    from .session import Session

_NICKNAME_RE = re.compile(NICKNAME_PATTERN)


class NicknameRegistry:
    """
    Maps normalized nicknames to sessions.

    Keys are always the normalized form of the owning session's current
    nickname, so two nicknames differing only in case can never both be held.
    Must be used with the hub state lock held.
    """

    def __init__(self, hub: Hub) -> None:
        self.hub = hub
        self.log = logging.getLogger("hector.registry")
        self._sessions: dict[str, Session] = {}

    @staticmethod
    def normalize(nickname: str | None) -> str:
        if isinstance(nickname, str) and _NICKNAME_RE.fullmatch(nickname):
            return nickname.lower()
        raise ErroneousNickname(nickname)

    def nicknames(self) -> list[str]:
        return list(self._sessions.keys())

    def find(self, nickname: str | None) -> Session | None:
        try:
            key = self.normalize(nickname)
        except ErroneousNickname:
            return None
        return self._sessions.get(key)

    def create(
        self,
        nickname: str,
        connection: Connection,
        identity: Identity,
        realname: str | None = None,
    ) -> Session:
        from .session import Session

        key = self.normalize(nickname)
        if key in self._sessions:
            raise NicknameInUse(nickname)

        session = Session(nickname, connection, identity, realname, hub=self.hub)
        self._sessions[key] = session
        self.log.info("Session created nick=%s user=%s", nickname, identity.username)
        return session

    def rename(self, old_nickname: str, new_nickname: str) -> Session:
        """Move a session to a new key; nothing changes if the new key is taken."""
        new_key = self.normalize(new_nickname)
        if new_key in self._sessions:
            raise NicknameInUse(new_nickname)

        old_key = self.normalize(old_nickname)
        session = self._sessions.get(old_key)
        if session is None:
            raise NoSuchNickOrChannel(old_nickname)

        del self._sessions[old_key]
        self._sessions[new_key] = session
        self.log.info("Nick changed old=%s new=%s", old_nickname, new_nickname)
        return session

    def delete(self, nickname: str) -> None:
        try:
            key = self.normalize(nickname)
        except ErroneousNickname:
            return
        self._sessions.pop(key, None)

    def broadcast_to(
        self,
        sessions: Iterable[Session],
        command: str,
        *args: Any,
        except_session: Session | None = None,
        **options: Any,
    ) -> None:
        """Send one reply to each session, skipping ``except_session`` by identity."""
        for session in sessions:
            if session is except_session:
                continue
            session.respond_with(command, *args, **options)

    def clear_all(self) -> list[Session]:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        return sessions

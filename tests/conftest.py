from __future__ import annotations

from collections.abc import Callable

import pytest

from hector.hub import Hub
from hector.identity import Identity
from hector.session import Session

from helpers import RecordingConnection


@pytest.fixture
def hub() -> Hub:
    return Hub()


@pytest.fixture
def register(hub: Hub) -> Callable[..., tuple[Session, RecordingConnection]]:
    def _register(
        nickname: str, username: str = "user", realname: str | None = None
    ) -> tuple[Session, RecordingConnection]:
        conn = RecordingConnection()
        session = hub.nicknames.create(nickname, conn, Identity(username), realname)
        return session, conn

    return _register

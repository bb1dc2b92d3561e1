"""Per-client protocol handling: registration, reply emission, teardown."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Protocol

from .constants import ERR_PASSWDMISMATCH, SERVER_NAME, TXT_INVALID_PASSWORD
from .errors import IrcError, NeedMoreParams
from .request import Request
from .response import Response

if TYPE_CHECKING:
    from .hub import Hub
    from .session import Session


class Transport(Protocol):
    """Byte sink for one client. ``write`` is only called outside the state lock."""

    def write(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class Connection:
    """
    Glue between one client transport and the hub.

    Until the client has sent both NICK and USER (and PASS, if the identity
    store requires one) the connection handles the registration commands
    itself. Afterwards every request goes to its ``Session``; a protocol
    rejection returned by the session is written back as its numeric reply.
    """

    REGISTRATION_COMMANDS = ("pass", "user", "nick", "quit", "ping")

    def __init__(self, hub: Hub, transport: Transport, *, peer: str = "-") -> None:
        self.hub = hub
        self.transport = transport
        self.peer = peer
        self.log = logging.getLogger("hector.connection")
        self.session: Session | None = None
        self.closing = False

        self._password: str | None = None
        self._username: str | None = None
        self._realname: str | None = None
        self._nickname: str | None = None
        self._outbox: list[bytes] = []
        self._write_lock = threading.Lock()

    @property
    def nickname(self) -> str:
        return self.session.nickname if self.session is not None else "*"

    def receive_line(self, line: str) -> None:
        if self.closing:
            return
        request = Request.parse(line)
        if request is None:
            return

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug("RX peer=%s nick=%s line=%r", self.peer, self.nickname, line.rstrip("\r\n"))

        with self.hub.state_lock:
            try:
                if self.session is not None:
                    error = self.session.receive(request)
                    if error is not None:
                        self.respond_with_error(error)
                else:
                    self._receive_unregistered(request)
            except Exception:
                self.log.exception(
                    "Handler failed peer=%s nick=%s command=%s",
                    self.peer,
                    self.nickname,
                    request.command,
                )
        self.hub.flush_outgoing()

    def respond_with(
        self,
        command: str | int,
        *args: Any,
        source: str | None = None,
        text: Any = None,
    ) -> None:
        response = Response.build(command, *args, source=source, text=text)
        payload = response.encode()
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug("TX peer=%s line=%r", self.peer, str(response))
        with self._write_lock:
            self._outbox.append(payload)
        self.hub.queue_flush(self)

    def flush(self) -> None:
        """Write queued replies in order. The write lock keeps concurrent flushes apart."""
        with self._write_lock:
            pending, self._outbox = self._outbox, []
            for payload in pending:
                try:
                    self.transport.write(payload)
                except OSError as e:
                    self.log.debug("Send failed peer=%s bytes=%s err=%s", self.peer, len(payload), e)
                    return

    def respond_with_error(self, error: IrcError) -> None:
        self.respond_with(error.kind.numeric, self.nickname, error.target, text=error.kind.message)

    def close_connection(self) -> None:
        if self.closing:
            return
        self.closing = True
        try:
            self.transport.close()
        except OSError as e:
            self.log.debug("Close failed peer=%s err=%s", self.peer, e)

    def unbind(self) -> None:
        """Called by the transport once the client is gone."""
        self.closing = True
        with self.hub.state_lock:
            session, self.session = self.session, None
            if session is None:
                return
            try:
                session.destroy()
            except Exception:
                self.log.exception("Destroy failed peer=%s nick=%s", self.peer, session.nickname)
        self.hub.flush_outgoing()

    def _receive_unregistered(self, request: Request) -> None:
        name = request.event_name
        if name not in self.REGISTRATION_COMMANDS:
            return

        try:
            if name == "pass":
                self._password = self._require_arg(request, 0)
            elif name == "user":
                self._username = self._require_arg(request, 0)
                self._realname = request.text or request.arg(3) or self._username
            elif name == "nick":
                self._nickname = self._require_arg(request, 0)
            elif name == "ping":
                token = request.text if request.text is not None else request.arg(0)
                self.respond_with("pong", SERVER_NAME, source=SERVER_NAME, text=token)
                return
            elif name == "quit":
                self.close_connection()
                return
        except IrcError as e:
            self.respond_with_error(e)
            return

        if self._nickname and self._username:
            self._register()

    def _register(self) -> None:
        identity = self.hub.identities.authenticate(self._username, self._password)
        if identity is None:
            self.log.warning("Authentication failed peer=%s user=%r", self.peer, self._username)
            self.respond_with(ERR_PASSWDMISMATCH, "*", text=TXT_INVALID_PASSWORD)
            self.close_connection()
            return

        nickname = self._nickname
        try:
            self.session = self.hub.nicknames.create(nickname, self, identity, self._realname)
        except IrcError as e:
            # Stay unregistered until the client offers another nickname.
            self._nickname = None
            self.respond_with_error(e)
            return

        self.log.info("Registered peer=%s nick=%s user=%s", self.peer, nickname, identity.username)
        self.session.welcome()

    @staticmethod
    def _require_arg(request: Request, index: int) -> str:
        value = request.arg(index)
        if not value:
            raise NeedMoreParams(request.command)
        return value

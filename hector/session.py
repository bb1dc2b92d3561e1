from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .channels import Channel, is_channel_name
from .constants import (
    DEFAULT_QUIT_MESSAGE,
    ERR_NOMOTD,
    ERR_NOSUCHNICK,
    HOST_MASK,
    RPL_ENDOFMOTD,
    RPL_ENDOFWHO,
    RPL_ENDOFWHOIS,
    RPL_MOTD,
    RPL_MOTDSTART,
    RPL_WELCOME,
    RPL_WHOISCHANNELS,
    RPL_WHOISIDLE,
    RPL_WHOISSERVER,
    RPL_WHOISUSER,
    RPL_WHOREPLY,
    SERVER_INFO,
    SERVER_NAME,
    TXT_ENDOFWHO,
    TXT_ENDOFWHOIS,
    TXT_NOMOTD,
    TXT_NOSUCHNICK,
    TXT_WELCOME,
    TXT_WHOIS_IDLE,
)
from .errors import CannotSendToChannel, IrcError, NeedMoreParams, NoSuchNickOrChannel

if TYPE_CHECKING:
    from .connection import Connection
    from .hub import Hub
    from .identity import Identity
    from .request import Request


def _now() -> int:
    return int(time.time())


class Session:
    """
    Server-side state for one registered client.

    Sessions are created by ``NicknameRegistry.create`` and live until
    ``destroy``. Commands arrive through ``receive`` and are dispatched via
    ``HANDLERS``; anything not in the table is ignored.
    """

    HANDLERS: dict[str, Callable[[Session], None]]

    def __init__(
        self,
        nickname: str,
        connection: Connection,
        identity: Identity,
        realname: str | None,
        *,
        hub: Hub,
    ) -> None:
        self.nickname = nickname
        self.connection = connection
        self.identity = identity
        self.realname = realname or identity.username
        self.hub = hub
        self.log = logging.getLogger("hector.session")
        self.connected = _now()
        self.last_message = self.connected
        self.quit_message = DEFAULT_QUIT_MESSAGE
        self._request: Request | None = None
        self._destroyed = False

    def __repr__(self) -> str:
        return f"<Session {self.nickname}>"

    @property
    def request(self) -> Request:
        if self._request is None:
            raise RuntimeError("no request is being handled")
        return self._request

    @property
    def source(self) -> str:
        return f"{self.nickname}!{self.identity.username}@{HOST_MASK}"

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def receive(self, request: Request) -> IrcError | None:
        """Run the handler for ``request``.

        Returns the protocol rejection raised by the handler, or None. Unknown
        commands return None without doing anything.
        """
        handler = self.HANDLERS.get(request.event_name)
        if handler is None:
            return None

        self._request = request
        try:
            handler(self)
        except IrcError as e:
            self.log.debug("Rejected nick=%s command=%s err=%s", self.nickname, request.command, e)
            return e
        finally:
            self._request = None
        return None

    def idle(self) -> int:
        return max(0, _now() - self.last_message)

    def welcome(self) -> None:
        self.respond_with(RPL_WELCOME, self.nickname, text=TXT_WELCOME)

        motd = self.hub.config.motd
        if not motd:
            self.respond_with(ERR_NOMOTD, self.nickname, text=TXT_NOMOTD)
            return
        self.respond_with(RPL_MOTDSTART, self.nickname, text=f"- {SERVER_NAME} Message of the day -")
        for line in motd.splitlines() or [""]:
            self.respond_with(RPL_MOTD, self.nickname, text=f"- {line}")
        self.respond_with(RPL_ENDOFMOTD, self.nickname, text="End of /MOTD command.")

    # Handlers

    def on_privmsg(self) -> None:
        self._deliver_message_as("privmsg")

    def on_notice(self) -> None:
        self._deliver_message_as("notice")

    def on_join(self) -> None:
        for name in self._require_arg(0).split(","):
            if name:
                self.hub.channels.find_or_create(name).join(self)

    def on_part(self) -> None:
        channel = self.hub.channels.get(self._require_arg(0))
        channel.part(self, self.request.text)

    def on_names(self) -> None:
        self.hub.channels.get(self._require_arg(0)).respond_to_names(self)

    def on_topic(self) -> None:
        channel = self.hub.channels.get(self._require_arg(0))

        if len(self.request.args) > 1:
            text = self.request.text
            channel.change_topic(self, text if text is not None else self.request.args[1])
        else:
            channel.respond_to_topic(self)

    def on_ping(self) -> None:
        text = self.request.text
        if text is None:
            text = self.request.arg(0)
        self.respond_with("pong", SERVER_NAME, source=SERVER_NAME, text=text)

    def on_whois(self) -> None:
        nickname = self._require_arg(0)
        session = self.hub.nicknames.find(nickname)
        if session is not None:
            self._respond_to_whois_for(session)
        else:
            # 401 rather than raising: the 318 below must still go out.
            self.respond_with(ERR_NOSUCHNICK, self.nickname, nickname, text=TXT_NOSUCHNICK)
        self.respond_with(RPL_ENDOFWHOIS, self.nickname, nickname, text=TXT_ENDOFWHOIS)

    def on_who(self) -> None:
        destination = self._require_arg(0)

        if is_channel_name(destination):
            channel = self.hub.channels.find(destination)
            if channel is not None:
                self._respond_to_who_for(destination, channel.sessions)
        else:
            session = self.hub.nicknames.find(destination)
            if session is not None:
                self._respond_to_who_for("*", [session])

        self.respond_with(RPL_ENDOFWHO, self.nickname, destination, text=TXT_ENDOFWHO)

    def on_nick(self) -> None:
        self.rename(self._require_arg(0))

    def on_quit(self) -> None:
        text = self.request.text
        if text is None:
            text = self.request.arg(0)
        self.quit_message = f"Quit: {text}" if text else DEFAULT_QUIT_MESSAGE
        self.connection.close_connection()

    HANDLERS = {
        "privmsg": on_privmsg,
        "notice": on_notice,
        "join": on_join,
        "part": on_part,
        "names": on_names,
        "topic": on_topic,
        "ping": on_ping,
        "whois": on_whois,
        "who": on_who,
        "nick": on_nick,
        "quit": on_quit,
    }

    # State transitions

    def rename(self, new_nickname: str) -> None:
        self.hub.nicknames.rename(self.nickname, new_nickname)
        # Peers see the old source; the field follows the registry key regardless.
        try:
            self.broadcast("nick", new_nickname, source=self.source)
        finally:
            self.nickname = new_nickname

    def destroy(self) -> None:
        """Notify peers and drop every trace of this session. Runs once."""
        if self._destroyed:
            return
        self._destroyed = True

        try:
            self._deliver_quit_message()
        finally:
            self._leave_all_channels()
            self.hub.nicknames.delete(self.nickname)
            self.log.info("Session destroyed nick=%s reason=%r", self.nickname, self.quit_message)

    # Routing

    def respond_with(self, command: str, *args: Any, **options: Any) -> None:
        self.connection.respond_with(command, *args, **options)

    def broadcast(self, command: str, *args: Any, **options: Any) -> None:
        self.hub.nicknames.broadcast_to(self.peer_sessions(), command, *args, **options)

    def channels(self) -> list[Channel]:
        return self.hub.channels.find_all_for_session(self)

    def peer_sessions(self) -> list[Session]:
        peers: dict[Session, None] = {self: None}
        for channel in self.channels():
            for member in channel.sessions:
                peers.setdefault(member, None)
        return list(peers)

    # Internals

    def _require_arg(self, index: int) -> str:
        value = self.request.arg(index)
        if not value:
            raise NeedMoreParams(self.request.command)
        return value

    def _deliver_message_as(self, command: str) -> None:
        destination = self._require_arg(0)
        text = self.request.text
        if text is None:
            text = self.request.arg(1)
        self.last_message = _now()

        if text is None:
            raise NeedMoreParams(self.request.command)

        if is_channel_name(destination):
            self._on_channel_message(command, destination, text)
        else:
            self._on_session_message(command, destination, text)

    def _on_channel_message(self, command: str, channel_name: str, text: str) -> None:
        channel = self.hub.channels.find(channel_name)
        if channel is None:
            raise NoSuchNickOrChannel(channel_name)
        if not channel.has_session(self):
            raise CannotSendToChannel(channel_name)
        channel.broadcast(command, channel.name, source=self.source, text=text, except_session=self)

    def _on_session_message(self, command: str, nickname: str, text: str) -> None:
        session = self.hub.nicknames.find(nickname)
        if session is None:
            raise NoSuchNickOrChannel(nickname)
        session.respond_with(command, nickname, source=self.source, text=text)

    def _deliver_quit_message(self) -> None:
        self.broadcast("quit", source=self.source, text=self.quit_message, except_session=self)
        self.respond_with(
            "error",
            text=f"Closing Link: {self.nickname}[{HOST_MASK}] ({self.quit_message})",
        )

    def _leave_all_channels(self) -> None:
        for channel in self.channels():
            channel.remove(self)

    def _respond_to_who_for(self, destination: str, sessions: list[Session]) -> None:
        for session in list(sessions):
            self.respond_with(
                RPL_WHOREPLY,
                self.nickname,
                destination,
                session.identity.username,
                SERVER_NAME,
                SERVER_NAME,
                session.nickname,
                "H",
                text=f"0 {session.realname}",
            )

    def _respond_to_whois_for(self, session: Session) -> None:
        self.respond_with(
            RPL_WHOISUSER,
            self.nickname,
            session.nickname,
            session.identity.username,
            SERVER_NAME,
            "*",
            text=session.realname,
        )
        channels = session.channels()
        if channels:
            self.respond_with(
                RPL_WHOISCHANNELS,
                self.nickname,
                session.nickname,
                text=" ".join(channel.name for channel in channels),
            )
        self.respond_with(RPL_WHOISSERVER, self.nickname, session.nickname, SERVER_NAME, text=SERVER_INFO)
        self.respond_with(
            RPL_WHOISIDLE,
            self.nickname,
            session.nickname,
            session.idle(),
            session.connected,
            text=TXT_WHOIS_IDLE,
        )

"""Channel directory and membership for the hector server.

A channel owns its member list; sessions never store the channels they are
in. ``ChannelDirectory.find_all_for_session`` is the only way to ask which
channels a session belongs to.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from .constants import (
    CHANNEL_SIGIL,
    RPL_ENDOFNAMES,
    RPL_NAMREPLY,
    RPL_NOTOPIC,
    RPL_TOPIC,
    RPL_TOPICWHOTIME,
    TXT_ENDOFNAMES,
    TXT_NOTOPIC,
)
from .errors import CannotSendToChannel, NoSuchNickOrChannel

if TYPE_CHECKING:
    from .hub import Hub
    from .session import Session


def is_channel_name(destination: str | None) -> bool:
    return isinstance(destination, str) and destination.startswith(CHANNEL_SIGIL)


class Channel:
    def __init__(self, name: str, hub: Hub) -> None:
        self.name = name
        self.hub = hub
        self.log = logging.getLogger("hector.channels")
        self.sessions: list[Session] = []
        self.topic: str | None = None
        self.topic_nickname: str | None = None
        self.topic_time: int | None = None
        self.created = int(time.time())

    def __repr__(self) -> str:
        return f"<Channel {self.name} members={len(self.sessions)}>"

    def has_session(self, session: Session) -> bool:
        return any(member is session for member in self.sessions)

    def join(self, session: Session) -> bool:
        """Add a member and announce it. Returns False if already joined."""
        if self.has_session(session):
            return False

        self.sessions.append(session)
        self.log.info("Join channel=%s nick=%s members=%s", self.name, session.nickname, len(self.sessions))

        self.broadcast("join", source=session.source, text=self.name)
        if self.topic is not None:
            self.respond_to_topic(session)
        self.respond_to_names(session)
        return True

    def part(self, session: Session, reason: str | None = None) -> None:
        if not self.has_session(session):
            return
        # The leaving member sees its own PART.
        self.broadcast("part", self.name, source=session.source, text=reason or "")
        self.remove(session)
        self.log.info("Part channel=%s nick=%s", self.name, session.nickname)

    def remove(self, session: Session) -> None:
        self.sessions = [member for member in self.sessions if member is not session]

    def broadcast(
        self,
        command: str,
        *args: Any,
        except_session: Session | None = None,
        **options: Any,
    ) -> None:
        # Copy: a recipient's transport failure must not disturb iteration.
        self.hub.nicknames.broadcast_to(
            list(self.sessions), command, *args, except_session=except_session, **options
        )

    def respond_to_names(self, session: Session) -> None:
        nicknames = " ".join(member.nickname for member in self.sessions)
        session.respond_with(RPL_NAMREPLY, session.nickname, "=", self.name, text=nicknames)
        session.respond_with(RPL_ENDOFNAMES, session.nickname, self.name, text=TXT_ENDOFNAMES)

    def change_topic(self, session: Session, topic: str) -> None:
        if not self.has_session(session):
            raise CannotSendToChannel(self.name)

        self.topic = topic
        self.topic_nickname = session.nickname
        self.topic_time = int(time.time())
        self.broadcast("topic", self.name, source=session.source, text=topic)

    def respond_to_topic(self, session: Session) -> None:
        if self.topic is None:
            session.respond_with(RPL_NOTOPIC, session.nickname, self.name, text=TXT_NOTOPIC)
            return
        session.respond_with(RPL_TOPIC, session.nickname, self.name, text=self.topic)
        session.respond_with(
            RPL_TOPICWHOTIME,
            session.nickname,
            self.name,
            self.topic_nickname,
            self.topic_time,
        )


class ChannelDirectory:
    """
    Maps channel names to channels.

    Names are kept exactly as first joined (no case folding). Channels are
    never removed when their last member leaves.
    Must be used with the hub state lock held.
    """

    def __init__(self, hub: Hub) -> None:
        self.hub = hub
        self.log = logging.getLogger("hector.channels")
        self._channels: dict[str, Channel] = {}

    def find(self, name: str | None) -> Channel | None:
        if name is None:
            return None
        return self._channels.get(name)

    def get(self, name: str | None) -> Channel:
        """Like find(), but a missing channel is a protocol error."""
        channel = self.find(name)
        if channel is None:
            raise NoSuchNickOrChannel(name)
        return channel

    def find_or_create(self, name: str) -> Channel:
        channel = self.find(name)
        if channel is not None:
            return channel

        if not is_channel_name(name) or len(name) < 2 or "," in name:
            raise NoSuchNickOrChannel(name)

        channel = Channel(name, self.hub)
        self._channels[name] = channel
        self.log.debug("Channel created channel=%s", name)
        return channel

    def find_all_for_session(self, session: Session) -> list[Channel]:
        return [channel for channel in self._channels.values() if channel.has_session(session)]

    def names(self) -> list[str]:
        return list(self._channels.keys())

    def clear_all(self) -> None:
        self._channels.clear()

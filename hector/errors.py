"""Protocol-level rejections raised by the registry, channels and sessions.

These are expected outcomes, not faults: the connection layer maps each
``ErrorKind`` to its numeric reply and keeps serving the client.
"""

from __future__ import annotations

import enum

from .constants import (
    ERR_CANNOTSENDTOCHAN,
    ERR_ERRONEUSNICKNAME,
    ERR_NEEDMOREPARAMS,
    ERR_NICKNAMEINUSE,
    ERR_NOSUCHNICK,
    TXT_NOSUCHNICK,
)


@enum.unique
class ErrorKind(enum.Enum):
    NICKNAME_IN_USE = (ERR_NICKNAMEINUSE, "Nickname is already in use")
    ERRONEOUS_NICKNAME = (ERR_ERRONEUSNICKNAME, "Erroneous nickname")
    CANNOT_SEND_TO_CHANNEL = (ERR_CANNOTSENDTOCHAN, "Cannot send to channel")
    NO_SUCH_NICK_OR_CHANNEL = (ERR_NOSUCHNICK, TXT_NOSUCHNICK)
    NEED_MORE_PARAMS = (ERR_NEEDMOREPARAMS, "Not enough parameters")

    @property
    def numeric(self) -> str:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


class IrcError(Exception):
    """Base class; ``target`` is the nickname, channel or command at fault."""

    kind: ErrorKind

    def __init__(self, target: str | None) -> None:
        super().__init__(target)
        self.target = target or "*"

    def __str__(self) -> str:
        return f"{self.kind.numeric} {self.target}: {self.kind.message}"


class NicknameInUse(IrcError):
    kind = ErrorKind.NICKNAME_IN_USE


class ErroneousNickname(IrcError):
    kind = ErrorKind.ERRONEOUS_NICKNAME


class CannotSendToChannel(IrcError):
    kind = ErrorKind.CANNOT_SEND_TO_CHANNEL


class NoSuchNickOrChannel(IrcError):
    kind = ErrorKind.NO_SUCH_NICK_OR_CHANNEL


class NeedMoreParams(IrcError):
    kind = ErrorKind.NEED_MORE_PARAMS

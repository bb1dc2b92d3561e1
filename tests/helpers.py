from __future__ import annotations

from hector.request import Request
from hector.response import Response
from hector.session import Session


class RecordingConnection:
    """Stands in for a client connection and keeps every reply."""

    def __init__(self) -> None:
        self.responses: list[Response] = []
        self.closed = False

    def respond_with(self, command, *args, source=None, text=None) -> None:
        self.responses.append(Response.build(command, *args, source=source, text=text))

    def close_connection(self) -> None:
        self.closed = True

    def commands(self) -> list[str]:
        return [r.command for r in self.responses]

    def lines(self) -> list[str]:
        return [str(r) for r in self.responses]

    def named(self, command: str) -> list[Response]:
        return [r for r in self.responses if r.command == command]

    def clear(self) -> None:
        self.responses.clear()


def send(session: Session, line: str):
    request = Request.parse(line)
    assert request is not None
    return session.receive(request)

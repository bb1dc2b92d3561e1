from __future__ import annotations

from dataclasses import dataclass, field

from .constants import MAX_LINE_BYTES, SERVER_NAME


@dataclass(frozen=True)
class Response:
    """A reply line on its way to one client."""

    command: str
    args: tuple[str, ...] = field(default_factory=tuple)
    source: str | None = None
    text: str | None = None

    @classmethod
    def build(
        cls,
        command: str | int,
        *args: object,
        source: str | None = None,
        text: object = None,
    ) -> Response:
        if isinstance(command, int) or str(command).isdigit():
            cmd = str(command).zfill(3)
        else:
            cmd = str(command).upper()
        return cls(
            command=cmd,
            args=tuple(str(a) for a in args),
            source=source,
            text=None if text is None else str(text),
        )

    def __str__(self) -> str:
        parts = [f":{self.source or SERVER_NAME}", self.command]
        parts.extend(a for a in self.args if a != "")
        line = " ".join(parts)
        if self.text is not None:
            line = f"{line} :{self.text}"
        return line

    def encode(self) -> bytes:
        # Strip embedded line breaks so one reply is always one line.
        line = str(self).replace("\r", " ").replace("\n", " ")
        data = line.encode("utf-8", "replace")
        limit = MAX_LINE_BYTES - 2
        if len(data) > limit:
            data = data[:limit].decode("utf-8", "ignore").encode("utf-8")
        return data + b"\r\n"

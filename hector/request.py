from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Request:
    """One parsed client line.

    ``args`` holds the middle parameters followed by the trailing text (when
    present), so handlers can count parameters without caring how the client
    delimited the last one. ``text`` is the trailing parameter alone.
    """

    event_name: str
    args: tuple[str, ...] = field(default_factory=tuple)
    text: str | None = None

    @property
    def command(self) -> str:
        return self.event_name.upper()

    @classmethod
    def parse(cls, line: str) -> Request | None:
        s = line.rstrip("\r\n")

        # Clients may send a prefix; the server already knows who they are.
        if s.startswith(":"):
            s = s.partition(" ")[2]

        head, sep, text = s.partition(" :")
        words = head.split()
        if not words:
            return None

        args = words[1:]
        if sep:
            args.append(text)
        else:
            text = None

        return cls(event_name=words[0].lower(), args=tuple(args), text=text)

    def arg(self, index: int) -> str | None:
        """Return the positional argument at ``index``, or None."""
        if 0 <= index < len(self.args):
            return self.args[index]
        return None

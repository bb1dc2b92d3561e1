"""Identity lookup and password checks for connecting clients."""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
import threading
from dataclasses import dataclass

from .paths import expand_path


@dataclass(frozen=True)
class Identity:
    username: str


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class IdentityStore:
    """
    Maps usernames to password digests.

    The backing file is TOML with a single ``[identities]`` table of
    ``username = "<sha256 hex>"`` entries. Without a file the store is open
    and accepts any username.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = expand_path(path) if path else None
        self.log = logging.getLogger("hector.identity")
        self._digests: dict[str, str] = {}
        self._write_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.path is None

    def load(self) -> None:
        """Read the identity file, replacing anything loaded before."""
        if self.path is None:
            return
        if not os.path.exists(self.path):
            raise RuntimeError(f"Identity file not found at {self.path}")

        from .config import load_toml

        data = load_toml(self.path)
        table = data.get("identities")
        digests: dict[str, str] = {}
        if isinstance(table, dict):
            for username, digest in table.items():
                if isinstance(digest, str) and digest.strip():
                    digests[str(username)] = digest.strip().lower()
        self._digests = digests
        self.log.info("Loaded identities count=%s path=%s", len(digests), self.path)

    def authenticate(self, username: str | None, password: str | None) -> Identity | None:
        if not username:
            return None
        if self.is_open:
            return Identity(username)

        expected = self._digests.get(username)
        if expected is None or password is None:
            return None
        if not hmac.compare_digest(expected, hash_password(password)):
            return None
        return Identity(username)

    def set_password(self, username: str, password: str) -> None:
        """Add or replace one identity, rewriting the file in place."""
        if self.path is None:
            raise RuntimeError("no identities file configured")

        from tomlkit import dumps, parse, table

        with self._write_lock:
            file_stat = None
            try:
                file_stat = os.stat(self.path)
            except OSError:
                file_stat = None

            text = ""
            if file_stat is not None:
                with open(self.path, encoding="utf-8") as f:
                    text = f.read()
            doc = parse(text)

            identities = doc.get("identities")
            if identities is None:
                identities = table()
                doc["identities"] = identities

            digest = hash_password(password)
            identities[username] = digest

            with open(self.path, "w", encoding="utf-8") as f:
                f.write(dumps(doc))

            if file_stat is not None:
                try:
                    os.chmod(self.path, file_stat.st_mode)
                except OSError:
                    pass

        self._digests[username] = digest

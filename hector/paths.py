from __future__ import annotations

import os
from pathlib import Path


def default_hector_dir() -> Path:
    override = os.environ.get("HECTOR_HOME")
    if override:
        return Path(override)
    return Path.home() / ".hector"


def default_config_path() -> Path:
    return default_hector_dir() / "hector.toml"


def default_identities_path() -> Path:
    return default_hector_dir() / "identities.toml"


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    try:
        # Best-effort tightening; may fail on some filesystems.
        os.chmod(path, 0o700)
    except Exception:
        pass

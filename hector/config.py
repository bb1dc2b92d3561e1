from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass(frozen=True)
class ServerConfig:
    config_path: str | None = None
    identities_path: str | None = None
    host: str = "0.0.0.0"
    port: int = 6767
    motd: str | None = None
    max_sendq_bytes: int = 256 * 1024
    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None


def load_toml(path: str) -> dict:
    import tomllib

    with open(path, "rb") as f:
        return tomllib.load(f)


def apply_config_data(cfg: ServerConfig, data: dict[str, Any]) -> ServerConfig:
    """Overlay the ``[server]`` and ``[logging]`` tables of a parsed file."""
    server = data.get("server") if isinstance(data, dict) else None
    if isinstance(server, dict):
        data = {**data, **server}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped: dict[str, object] = {}
        for key in ("level", "console", "file", "format", "datefmt"):
            if key in log_table:
                mapped[f"log_{key}"] = log_table.get(key)
        data = {**data, **mapped}

    allowed = set(asdict(cfg).keys())
    # This identifies where the config came from; do not let the file override it.
    allowed.discard("config_path")
    updates = {k: v for k, v in data.items() if k in allowed}

    for int_key in ("port", "max_sendq_bytes"):
        if int_key in updates:
            updates[int_key] = int(updates[int_key])
    if "log_console" in updates:
        updates["log_console"] = bool(updates["log_console"])
    for optional_key in ("identities_path", "motd", "log_file", "log_datefmt"):
        if optional_key in updates and updates[optional_key] == "":
            updates[optional_key] = None
    return replace(cfg, **updates) if updates else cfg


def apply_config_file(cfg: ServerConfig, path: str) -> ServerConfig:
    return apply_config_data(cfg, load_toml(path))

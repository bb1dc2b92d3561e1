from __future__ import annotations

import argparse
import getpass
import os
import sys
from dataclasses import replace
from pathlib import Path

from .config import ServerConfig, apply_config_file
from .identity import IdentityStore
from .logging_config import configure_logging
from .paths import (
    default_config_path,
    default_identities_path,
    ensure_private_dir,
)
from .service import IrcServer


def _write_default_config(config_path: str, identities_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    content = f"""# hector configuration (TOML)
#
# This file was created on first run.
# Edit it, then start hector again.

[server]

# Address and port to listen on.
host = "0.0.0.0"
port = 6767

# Identity file with one sha256 password digest per username.
# Leave empty to run an open server that accepts any username.
# Add users with: hector --set-password USERNAME
#
# identities_path = {identities_path!r}
identities_path = ""

# Message of the day. Leave empty to send "MOTD File is missing".
motd = ""

# Bytes of output that may queue for one client before it is disconnected.
max_sendq_bytes = 262144

[logging]

# Log level for hector itself.
level = "INFO"

# Log to stderr (systemd/journald friendly).
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
datefmt = ""
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)


def _ensure_first_run_files(config_path: str, identities_path: str) -> bool:
    created_any = False

    if not os.path.exists(config_path):
        _write_default_config(config_path, identities_path)
        created_any = True

    if identities_path and not os.path.exists(identities_path):
        storage_dir = os.path.dirname(identities_path)
        if storage_dir:
            ensure_private_dir(Path(storage_dir))
        content = """# hector identities (TOML)
#
# One entry per username: the sha256 hex digest of the password.
# Maintained by `hector --set-password USERNAME`; comments are preserved.
#
# [identities]
# alice = "5e884898da28047151d0e56f8dc6292773603d0d6aabbdd62a11ef721d1542d8"  # "password"

[identities]
"""
        with open(identities_path, "w", encoding="utf-8") as f:
            f.write(content)
        try:
            os.chmod(identities_path, 0o600)
        except Exception:
            pass
        created_any = True

    return created_any


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="hector", description="Run the hector IRC server")

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument(
        "--identities",
        default=None,
        help="Path to the identities TOML file (overrides config; empty for an open server)",
    )

    p.add_argument("--host", default=None, help="Address to listen on")
    p.add_argument("--port", type=int, default=None, help="Port to listen on")
    p.add_argument("--motd", default=None, help="Message of the day sent after welcome")

    p.add_argument(
        "--set-password",
        metavar="USERNAME",
        default=None,
        help="Add or update USERNAME in the identities file and exit",
    )

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )

    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def build_config(args: argparse.Namespace) -> ServerConfig:
    config_path = str(args.config)

    cfg = ServerConfig(config_path=config_path)
    if config_path and os.path.exists(config_path):
        cfg = apply_config_file(cfg, config_path)

    if args.identities is not None:
        cfg = replace(cfg, identities_path=str(args.identities) or None)
    if args.host is not None:
        cfg = replace(cfg, host=str(args.host))
    if args.port is not None:
        cfg = replace(cfg, port=int(args.port))
    if args.motd is not None:
        cfg = replace(cfg, motd=str(args.motd) or None)

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)

    return cfg


def _set_password(cfg: ServerConfig, username: str) -> None:
    path = cfg.identities_path or str(default_identities_path())
    password = getpass.getpass(f"Password for {username}: ")
    if not password:
        print("Empty password; nothing changed.", file=sys.stderr)
        raise SystemExit(1)
    IdentityStore(path).set_password(username, password)
    print(f"Updated {username} in {path}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    identities_path = str(default_identities_path())

    if _ensure_first_run_files(config_path, identities_path):
        print(
            "Created default hector files. Edit the configuration before starting:\n"
            f"- Config:     {config_path}\n"
            f"- Identities: {identities_path}\n"
            "\nThen re-run hector.",
            file=sys.stderr,
        )
        raise SystemExit(0)

    cfg = build_config(args)

    if args.set_password:
        _set_password(cfg, str(args.set_password))
        return

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    server = IrcServer(cfg)
    server.start()
    server.run_forever()


if __name__ == "__main__":
    main()

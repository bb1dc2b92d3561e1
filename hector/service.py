from __future__ import annotations

import logging
import signal
import queue
import socket
import socketserver
import threading
import time
from collections.abc import Iterator

from .config import ServerConfig
from .connection import Connection
from .constants import MAX_LINE_BYTES
from .hub import Hub

# Read cap per readline(); anything longer is an abusive line and is discarded.
_READ_LIMIT = 8 * MAX_LINE_BYTES

# How long a departing client's writer may take to drain its queue.
_DRAIN_TIMEOUT_S = 5.0


class _ClientHandler(socketserver.StreamRequestHandler):
    """
    One thread per client: read lines, feed the Connection, unbind on EOF.

    Output goes through a second thread. ``write`` only appends to a bounded
    send queue, so a client that stops reading stalls its own writer and
    nothing else; once the queue passes ``max_sendq_bytes`` the client is
    dropped.
    """

    server: _ThreadingServer

    def setup(self) -> None:
        super().setup()
        self.log = logging.getLogger("hector.server")
        host, port = self.client_address[:2]
        self.peer = f"{host}:{port}"
        self.irc_connection = Connection(self.server.irc.hub, self, peer=self.peer)

        self._sendq: queue.SimpleQueue[bytes | None] = queue.SimpleQueue()
        self._sendq_bytes = 0
        self._sendq_lock = threading.Lock()
        self._send_failed = False
        self._writer = threading.Thread(
            target=self._write_loop,
            name=f"hector-writer-{self.peer}",
            daemon=True,
        )
        self._writer.start()

    def handle(self) -> None:
        self.server.irc._track(self, True)
        self.log.info("Client connected peer=%s", self.peer)
        try:
            for line in self._read_lines():
                self.irc_connection.receive_line(line)
                if self.irc_connection.closing:
                    break
        except OSError as e:
            self.log.debug("Read failed peer=%s err=%s", self.peer, e)
        finally:
            self.irc_connection.unbind()
            self._stop_writer()
            self.server.irc._track(self, False)
            self.log.info("Client disconnected peer=%s", self.peer)

    def _read_lines(self) -> Iterator[str]:
        while True:
            raw = self.rfile.readline(_READ_LIMIT)
            if not raw:
                return
            if not raw.endswith(b"\n") and len(raw) >= _READ_LIMIT:
                while True:
                    rest = self.rfile.readline(_READ_LIMIT)
                    if not rest or rest.endswith(b"\n"):
                        break
            yield raw[:MAX_LINE_BYTES].decode("utf-8", "replace")

    # Transport

    def write(self, data: bytes) -> None:
        limit = int(self.server.irc.config.max_sendq_bytes)
        with self._sendq_lock:
            if self._send_failed:
                return
            overflow = self._sendq_bytes + len(data) > limit
            if overflow:
                self._send_failed = True
            else:
                self._sendq_bytes += len(data)
                self._sendq.put(data)
        if overflow:
            self.log.warning("SendQ exceeded peer=%s limit=%s", self.peer, limit)
            self.abort()

    def close(self) -> None:
        # Stop reading; writes stay open so the closing ERROR still goes out.
        self.request.shutdown(socket.SHUT_RD)

    def abort(self) -> None:
        try:
            self.request.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def _write_loop(self) -> None:
        while True:
            data = self._sendq.get()
            if data is None:
                return
            try:
                self.request.sendall(data)
            except OSError as e:
                self.log.debug("Write failed peer=%s err=%s", self.peer, e)
                with self._sendq_lock:
                    self._send_failed = True
                return
            with self._sendq_lock:
                self._sendq_bytes -= len(data)

    def _stop_writer(self) -> None:
        with self._sendq_lock:
            self._send_failed = True
        self._sendq.put(None)
        self._writer.join(_DRAIN_TIMEOUT_S)
        if self._writer.is_alive():
            self.log.debug("Writer still blocked peer=%s", self.peer)


class _ThreadingServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True
    irc: IrcServer


class IrcServer:
    def __init__(self, config: ServerConfig, hub: Hub | None = None) -> None:
        self.config = config
        self.hub = hub or Hub(config)
        self.log = logging.getLogger("hector.server")

        self._shutdown = threading.Event()
        self._tcp: _ThreadingServer | None = None
        self._listen_thread: threading.Thread | None = None

        self._clients: set[_ClientHandler] = set()
        self._clients_lock = threading.Lock()

    @property
    def address(self) -> tuple[str, int] | None:
        if self._tcp is None:
            return None
        host, port = self._tcp.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        self.hub.identities.load()

        self._tcp = _ThreadingServer((self.config.host, int(self.config.port)), _ClientHandler)
        self._tcp.irc = self

        self._listen_thread = threading.Thread(
            target=self._tcp.serve_forever,
            name="hector-listener",
            daemon=True,
        )
        self._listen_thread.start()

        host, port = self.address or (self.config.host, self.config.port)
        self.log.info("Server listening host=%s port=%s", host, port)
        self.log.info(
            "Policy identities=%s motd=%s",
            "open" if self.hub.identities.is_open else self.hub.identities.path,
            "set" if self.config.motd else "none",
        )

    def run_forever(self) -> None:
        if self._tcp is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self._shutdown.set())
        signal.signal(signal.SIGTERM, lambda *_: self._shutdown.set())

        while not self._shutdown.is_set():
            time.sleep(0.25)

        self.stop()

    def stop(self) -> None:
        self._shutdown.set()

        if self._tcp is not None:
            self._tcp.shutdown()
            self._tcp.server_close()
            self._tcp = None

        with self._clients_lock:
            clients = list(self._clients)
        for client in clients:
            client.abort()

        self.hub.clear_all()
        self.log.info("Server stopped clients=%s", len(clients))

    def _track(self, client: _ClientHandler, connected: bool) -> None:
        with self._clients_lock:
            if connected:
                self._clients.add(client)
            else:
                self._clients.discard(client)

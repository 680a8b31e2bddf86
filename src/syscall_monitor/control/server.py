"""Control server: the TCP endpoint an operator's tool talks to.

Architecture:
    Accept thread: socket.accept() in a loop (0.5s timeout to notice stop())
    Worker: single-thread ThreadPoolExecutor, so one operator connection
        is served at a time; later connections queue behind it
    Per-connection flow: loop { read -> parse -> apply -> respond }
        until the client hangs up

Validation failures go back to the client as an error response and the
connection stays usable. Transport faults end the connection. Nothing
the client sends can take the server down.
"""
from __future__ import annotations

import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor

from syscall_monitor.control.channel import ControlChannel
from syscall_monitor.control.protocol import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    decode,
    encode,
    read_message,
    write_message,
)
from syscall_monitor.domain.errors import ChannelError, ValidationError

log = logging.getLogger(__name__)


class ControlServer:
    """TCP server that applies control requests to a ControlChannel.

    Args:
        channel: where requests are applied
        host: Bind address (default "127.0.0.1")
        port: Bind port (0 = OS picks a free port)
        max_workers: concurrent connections served (default 1: one operator)
    """

    def __init__(
        self,
        channel: ControlChannel,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        max_workers: int = 1,
    ) -> None:
        self._channel = channel
        self._host = host
        self._port = port
        self._max_workers = max_workers
        self._server_socket: socket.socket | None = None
        self._running = False
        self._executor: ThreadPoolExecutor | None = None
        self._clients: set[socket.socket] = set()  # registered at accept time
        self._accept_thread: threading.Thread | None = None
        self._requests_processed = 0
        self._lock = threading.Lock()
        self._ready = threading.Event()  # signals when accept loop is running

    @property
    def address(self) -> tuple[str, int]:
        """Return (host, port) the server is bound to.

        Useful when port=0 (OS-assigned). Only valid after start().
        """
        if self._server_socket is None:
            raise RuntimeError("Server not started")
        return self._server_socket.getsockname()

    def start(self) -> None:
        """Bind socket and start accept loop. Blocks until stop() is called."""
        self.bind()
        self._accept_loop()

    def bind(self) -> None:
        """Bind and listen without entering the accept loop."""
        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_socket.bind((self._host, self._port))
        self._server_socket.listen(16)
        self._server_socket.settimeout(0.5)
        self._running = True
        self._executor = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="control"
        )
        self._ready.set()

    def serve_in_background(self) -> threading.Thread:
        """bind() now, run the accept loop on a daemon thread."""
        self.bind()
        thread = threading.Thread(
            target=self._accept_loop, daemon=True, name="control-accept"
        )
        thread.start()
        self._accept_thread = thread
        return thread

    def stop(self) -> None:
        """Stop accepting, drop open client connections, drain the pool.

        Connections still queued behind the worker are closed too, so no
        client is left waiting on a socket nobody will ever serve.
        """
        self._running = False
        if self._accept_thread is not None:
            self._accept_thread.join(timeout=2.0)
            self._accept_thread = None
        with self._lock:
            clients = list(self._clients)
        for client_sock in clients:
            try:
                client_sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        if self._executor:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
        with self._lock:
            leftover = list(self._clients)
            self._clients.clear()
        for client_sock in leftover:
            try:
                client_sock.close()
            except OSError:
                pass
        if self._server_socket:
            try:
                self._server_socket.close()
            except OSError:
                pass
            self._server_socket = None
        self._ready.clear()

    def wait_ready(self, timeout: float = 5.0) -> bool:
        """Block until the server is listening. For test setup."""
        return self._ready.wait(timeout=timeout)

    def _accept_loop(self) -> None:
        """Accept connections and submit to the worker pool.

        Uses socket timeout (0.5s) to periodically check self._running.
        """
        while self._running:
            try:
                client_sock, addr = self._server_socket.accept()
            except socket.timeout:
                continue
            except (OSError, AttributeError):
                break  # socket closed by stop()
            with self._lock:
                self._clients.add(client_sock)
            try:
                self._executor.submit(self._handle_connection, client_sock, addr)
            except (RuntimeError, AttributeError):
                with self._lock:
                    self._clients.discard(client_sock)
                client_sock.close()  # pool shut down by stop()
                break

    def _handle_connection(
        self, client_sock: socket.socket, addr: tuple[str, int]
    ) -> None:
        """Serve one operator until they disconnect."""
        try:
            while self._running:
                raw = read_message(client_sock)
                write_message(client_sock, encode(self._respond(raw)))
                with self._lock:
                    self._requests_processed += 1
        except ConnectionError:
            log.debug("Client %s disconnected", addr)
        except OSError:
            log.debug("Connection to %s closed", addr)
        except Exception:
            log.exception("Error handling %s", addr)
        finally:
            with self._lock:
                self._clients.discard(client_sock)
            try:
                client_sock.close()
            except OSError:
                pass

    def _respond(self, raw: bytes) -> dict:
        try:
            return self._channel.apply_payload(decode(raw)).to_dict()
        except ValidationError as exc:
            log.info("Rejected control request: %s", exc)
            return {"ok": False, "error": "validation", "message": str(exc)}
        except ChannelError as exc:
            return {"ok": False, "error": "channel", "message": str(exc)}

    @property
    def requests_processed(self) -> int:
        """Total requests answered (thread-safe read)."""
        with self._lock:
            return self._requests_processed

    @property
    def channel(self) -> ControlChannel:
        return self._channel

"""HTTP server that receives fault injection and recovery requests."""

from __future__ import annotations

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

from .faults import INJECT_PATH, RECOVER_PATH, FaultRegistry, InjectMessage

logger = logging.getLogger(__name__)

_SUCCESS = "success"
_DECODE_ERROR = "Cannot Decode Request Message\n"
_NOT_FOUND = "404 page not found\n"


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address!r} has no port")
    host = host.strip("[]")
    return host, int(port) if port else 0


def _decode(body: bytes) -> object:
    text = body.decode("utf-8").lstrip()
    value, _ = json.JSONDecoder().raw_decode(text)
    return value


class HookServer:
    """Serves the inject and recover endpoints over a fault registry."""

    def __init__(self, address: str, registry: FaultRegistry | None = None) -> None:
        self.address = address
        self.registry = registry if registry is not None else FaultRegistry()
        self._httpd: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        """Port the running server listens on."""
        if self._httpd is None:
            raise RuntimeError("server is not running")
        return self._httpd.server_address[1]

    def handle_inject(self, body: bytes) -> tuple[int, str]:
        """Register the fault in a JSON request body; return status and reply text."""
        try:
            decoded = _decode(body)
            message = InjectMessage() if decoded is None else InjectMessage.from_dict(decoded)
        except ValueError as exc:
            logger.error("Cannot Decode Request Message: %s", exc)
            return 400, _DECODE_ERROR
        logger.info("Inject Fault %s", message)
        self.registry.inject(message)
        return 200, _SUCCESS

    def handle_recover(self) -> tuple[int, str]:
        """Remove every injected fault; return status and reply text."""
        logger.info("recover all fault")
        self.registry.recover()
        return 200, _SUCCESS

    def start(self) -> None:
        """Bind the address and serve requests in a background thread."""
        if self._httpd is not None:
            raise RuntimeError("server is already running")
        owner = self

        class _Handler(BaseHTTPRequestHandler):
            def _dispatch(self) -> None:
                path = urlsplit(self.path).path
                if path == INJECT_PATH:
                    length = int(self.headers.get("Content-Length") or 0)
                    body = self.rfile.read(length) if length > 0 else b""
                    status, text = owner.handle_inject(body)
                elif path == RECOVER_PATH:
                    status, text = owner.handle_recover()
                else:
                    status, text = 404, _NOT_FOUND
                payload = text.encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "text/plain; charset=utf-8")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            do_GET = do_POST = do_PUT = do_DELETE = _dispatch

            def log_message(self, format: str, *args: object) -> None:
                logger.debug(format, *args)

        self._httpd = ThreadingHTTPServer(_split_address(self.address), _Handler)
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Shut the server down if it is running."""
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join()
        self._httpd = None
        self._thread = None

    def __enter__(self) -> HookServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
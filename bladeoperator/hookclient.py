"""HTTP client that asks a fuse sidecar to inject or revoke file-system faults."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request

from .faults import INJECT_PATH, RECOVER_PATH, InjectMessage

logger = logging.getLogger(__name__)

_JSON = "application/json"
_OK = 200


class HookClientError(Exception):
    """Raised when the sidecar cannot be reached or replies with a non-200 status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ChaosbladeHookClient:
    """Talks to the fault server at host:port."""

    def __init__(self, address: str, timeout: float = 30.0) -> None:
        self.address = address
        self.timeout = timeout
        self._opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))

    def _url(self, path: str) -> str:
        return f"http://{self.address}{path}"

    def _send(self, request: urllib.request.Request) -> tuple[int, str]:
        try:
            with self._opener.open(request, timeout=self.timeout) as response:
                return response.status, response.read().decode("utf-8", "replace")
        except urllib.error.HTTPError as exc:
            with exc:
                return exc.code, exc.read().decode("utf-8", "replace")
        except (urllib.error.URLError, OSError) as exc:
            raise HookClientError(str(exc)) from exc

    def inject_fault(self, message: InjectMessage) -> None:
        """Send a fault to inject; raise HookClientError unless the server accepts it."""
        body = json.dumps(message.to_dict()).encode("utf-8")
        logger.info("Inject fault %s", message)
        request = urllib.request.Request(
            self._url(INJECT_PATH), data=body, method="POST", headers={"Content-Type": _JSON}
        )
        status, text = self._send(request)
        logger.info("Inject fault %s, response is %s", message, text)
        if status != _OK:
            raise HookClientError(text, status)

    def revoke(self) -> None:
        """Ask the server to remove every fault; raise HookClientError on failure."""
        request = urllib.request.Request(
            self._url(RECOVER_PATH), method="GET", headers={"Content-Type": _JSON}
        )
        status, text = self._send(request)
        logger.info("Revoke fault, response is %s", text)
        if status != _OK:
            raise HookClientError(text, status)
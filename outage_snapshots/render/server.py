"""Loopback HTTP server exposing the project tree to the headless browser."""
import http.server
import logging
import threading
from pathlib import Path
from urllib.parse import unquote, urlsplit

from outage_snapshots.config import PROJECT_ROOT

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".html": "text/html; charset=utf-8",
    ".js": "text/javascript; charset=utf-8",
    ".mjs": "text/javascript; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".png": "image/png",
    ".svg": "image/svg+xml",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(path: str | Path) -> str:
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


class StaticHandler(http.server.BaseHTTPRequestHandler):
    root: Path = PROJECT_ROOT

    def _resolve(self) -> Path:
        request_path = unquote(urlsplit(self.path).path or "/")
        if request_path == "/":
            request_path = "/README.md"
        target = (self.root / request_path.lstrip("/")).resolve()
        # Raises ValueError outside the root; handled as not found
        target.relative_to(self.root)
        return target

    def do_GET(self) -> None:
        try:
            target = self._resolve()
            body = target.read_bytes()
        except (OSError, ValueError):
            self._send(404, b"Not found", "text/plain; charset=utf-8")
            return
        self._send(200, body, content_type_for(target))

    def _send(self, status: int, body: bytes, content_type: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:
        logger.debug(f"{self.address_string()} {format % args}")


class StaticServer:
    """Serves ``root`` on an ephemeral 127.0.0.1 port from a daemon thread."""

    def __init__(self, root: Path = PROJECT_ROOT):
        self.root = Path(root).resolve()
        handler = type("BoundStaticHandler", (StaticHandler,), {"root": self.root})
        self._server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), handler)
        self._server.daemon_threads = True
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def base_url(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}"

    def url_for(self, path: Path, **query: str | None) -> str:
        """URL of a file under the root, with optional (non-empty) query parameters."""
        rel = Path(path).resolve().relative_to(self.root).as_posix()
        params = "&".join(f"{k}={v}" for k, v in query.items() if v)
        return f"{self.base_url}/{rel}" + (f"?{params}" if params else "")

    def start(self) -> "StaticServer":
        self._thread.start()
        logger.info(f"Static server listening on {self.base_url} (root={self.root})")
        return self

    def close(self) -> None:
        if self._thread.is_alive():
            self._server.shutdown()
        self._server.server_close()

    def __enter__(self) -> "StaticServer":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

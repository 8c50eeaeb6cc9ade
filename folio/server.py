"""Development server for Folio.

Serves the built site with live reload for local authoring:
- Every build goes into a fresh snapshot directory; the server switches to it
  only when the build succeeds, so a broken edit never replaces a good site.
- Injects a reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Watches the source tree, static directory and folio.yaml and triggers
  rebuilds plus client reloads.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects reload script and enforces 404s.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import asyncio
import json
import shutil
import tempfile
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import build_site
from .config import CONFIG_FILENAME, BuildConfig
from .errors import BuildError
from .html_utils import RELOAD_SCRIPT_TEMPLATE, inject_reload_script


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript code for WebSocket connection to trigger reloads.
        prefix: URL prefix the site is built for; stripped from request paths.
    """

    reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=4001)
    prefix = "/"

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        # Never expose directory listings; treat as missing content.
        return self._serve_404()

    def translate_path(self, path):
        base = self.prefix.rstrip("/")
        if base and (path == base or path.startswith(base + "/")):
            path = path[len(base):] or "/"
        return super().translate_path(path)

    def _send_html(self, status: int, content: str) -> None:
        encoded = inject_reload_script(content, self.reload_script).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with injected reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            return self._serve_404()

        if path_obj.suffix == ".html":
            self._send_html(200, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        project_root: Root directory of the project.
        config: Build configuration read at startup.
        ws_port: Port for WebSocket connections.
        http_port: Port for HTTP server.
        live_dir: Snapshot currently being served, None before the first build.
        _observer: File system observer for changes.
        _ws_clients: Set of connected WebSocket clients.
        _loop: Event loop for WebSocket handling.
    """

    def __init__(
        self, project_root: Path, http_port: int | None = None, ws_port: int | None = None
    ):
        """Initialize the development server.

        Args:
            project_root: Root directory of the project.
            http_port: Optional override for HTTP port.
            ws_port: Optional override for the websocket port; defaults to the
                HTTP port plus one when the HTTP port is overridden.
        """
        self.project_root = project_root
        self.config = BuildConfig.load(project_root)
        self.http_port = int(http_port or self.config.port)
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is not None:
            self.ws_port = self.http_port + 1
        else:
            self.ws_port = self.config.ws_port
        self._reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=self.ws_port)
        self.live_dir: Path | None = None
        self._snapshot_root: Path | None = None
        self._snapshot_count = 0
        self._swap_lock = threading.Lock()
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05
        self._post_build_delay = 0.05

    def start(self) -> None:  # pragma: no cover - integration path
        self.build_snapshot()
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)
        if self._snapshot_root is not None:
            shutil.rmtree(self._snapshot_root, ignore_errors=True)
            self._snapshot_root = None

    def _next_snapshot_dir(self) -> Path:
        if self._snapshot_root is None:
            self._snapshot_root = Path(tempfile.mkdtemp(prefix="folio-serve-"))
        self._snapshot_count += 1
        return self._snapshot_root / f"build-{self._snapshot_count}"

    def build_snapshot(self) -> bool:
        """Build the site into a new snapshot and serve it if the build succeeds.

        A failed build prints the error, removes the partial snapshot and
        leaves the previous snapshot live.

        Returns:
            True if the new snapshot went live.
        """
        snapshot = self._next_snapshot_dir()
        try:
            build_site(self.project_root, output_dir_override=snapshot)
        except BuildError as exc:
            print(f"Build failed: {exc}")
            shutil.rmtree(snapshot, ignore_errors=True)
            return False
        except BaseException:
            shutil.rmtree(snapshot, ignore_errors=True)
            raise
        with self._swap_lock:
            previous, self.live_dir = self.live_dir, snapshot
        if previous is not None:
            shutil.rmtree(previous, ignore_errors=True)
        return True

    def _handler_factory(self):
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script, "prefix": self.config.prefix},
        )

        def factory(*args, **kwargs):
            with self._swap_lock:
                directory = self.live_dir
            return handler_cls(*args, directory=str(directory), **kwargs)

        return factory

    def _start_http(self) -> None:  # pragma: no cover - integration path
        httpd = ThreadingHTTPServer(("", self.http_port), self._handler_factory())
        print(f"Serving {self.project_root} at http://localhost:{self.http_port}{self.config.prefix}")
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.ws_port}): {exc}")
            return

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()  # Run forever

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def _watch_paths(self) -> list[Path]:
        return [self.config.source_dir, self.config.static_dir]

    def _start_watcher(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        for watch_path in self._watch_paths():
            if watch_path.exists():
                observer.schedule(handler, str(watch_path), recursive=True)
        # Watch root for folio.yaml
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def rebuild(self) -> None:
        now = time.time()
        if self._rebuilding or (now - self._last_rebuild_at) < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._rebuilding = True
        try:
            print("Change detected; rebuilding...")
            if not self.build_snapshot():
                return
            self._last_signature = signature
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _compute_signature(self) -> tuple | None:
        files: list[Path] = []
        for root in self._watch_paths():
            if root.exists():
                files.extend(path for path in sorted(root.rglob("*")) if not path.is_dir())
        config_file = self.project_root / CONFIG_FILENAME
        if config_file.exists():
            files.append(config_file)
        entries: list[tuple] = []
        for path in files:
            try:
                stat = path.stat()
            except OSError:
                continue
            entries.append((str(path), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        root = self.server.project_root
        # Direct children of the project root only matter for folio.yaml
        if path.parent == root and path.name != CONFIG_FILENAME:
            return
        for ignored in (self.server.config.output_dir, self.server._snapshot_root):
            if not ignored:
                continue
            try:
                path.relative_to(ignored)
                return
            except ValueError:
                pass
        if "node_modules" in path.parts:
            return
        self.server.rebuild()

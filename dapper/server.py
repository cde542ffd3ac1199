"""Development server for Dapper.

Serves the built site with live reload and sane defaults for local authoring:
- Injects a reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Runs the watcher on a background thread; each rebuild is written to a
  staging directory, swapped into place, and followed by a client reload.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects reload script and enforces 404s.
"""

from __future__ import annotations

import asyncio
import functools
import json
import os
import shutil
import threading
import time
from collections.abc import Callable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import click
import websockets

from .build import build_site
from .config import SiteConfig
from .console import echo_report
from .walker import BuildReport
from .watcher import DEFAULT_INTERVAL, Watcher

DEFAULT_PORT = 8000


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript code for WebSocket connection to trigger reloads.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=DEFAULT_PORT + 1)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        # Never expose directory listings; treat as missing content.
        return self._serve_404()

    def log_message(self, format, *args):
        click.echo(f"{self.address_string()} - {format % args}", err=True)

    def _inject(self, content: str) -> bytes:
        if "</body>" in content:
            content = content.replace("</body>", f"{self.reload_script}</body>")
        else:
            content += self.reload_script
        return content.encode("utf-8")

    def _send_html(self, status: int, encoded: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with injected reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            content = error_page.read_text(encoding="utf-8")
            self._send_html(404, self._inject(content))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path = self.translate_path(self.path)
        path_obj = Path(path)
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if index_path.exists():
                path = str(index_path)
                path_obj = index_path
            else:
                return self._serve_404()
        elif not path_obj.exists():
            return self._serve_404()

        if path.endswith(".html"):
            content = path_obj.read_text(encoding="utf-8", errors="replace")
            self._send_html(200, self._inject(content))
            return None
        return super().send_head()


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        config: Site configuration.
        output_dir: Directory where the built site is served.
        http_port: Port for the HTTP server.
        ws_port: Port for WebSocket connections.
        watcher: Watcher that triggers rebuilds.
        _ws_clients: Set of connected WebSocket clients.
        _loop: Event loop for WebSocket handling.
    """

    def __init__(
        self,
        config: SiteConfig,
        http_port: int | None = None,
        ws_port: int | None = None,
        interval: float = DEFAULT_INTERVAL,
        loader: Callable[[], SiteConfig] | None = None,
        host: str = "",
    ):
        """Initialize the development server.

        Args:
            config: Site configuration.
            http_port: Optional override for the HTTP port (default 8000).
            ws_port: Optional override for the WebSocket port (default HTTP port + 1).
            interval: Seconds between watcher polls.
            loader: Optional callable that re-reads the configuration before rebuilds.
            host: Interface to bind; empty means all interfaces.
        """
        self.config = config
        self.output_dir = config.output_dir
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self._backup_dir = self.output_dir.with_name(self.output_dir.name + ".old")
        self.http_port = DEFAULT_PORT if http_port is None else int(http_port)
        self.ws_port = ws_port if ws_port is not None else self.http_port + 1
        self.host = host
        self._reload_script = _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._httpd: ThreadingHTTPServer | None = None
        self._post_build_delay = 0.05
        self.watcher = Watcher(
            config,
            builder=self.rebuild,
            interval=interval,
            use_events=True,
            loader=loader,
        )

    def start(self) -> None:  # pragma: no cover - integration path
        """Build once, then serve and watch until interrupted.

        Raises:
            ConfigError: If the configuration cannot be parsed.
            SourceNotFoundError: If the source directory does not exist.
        """
        echo_report(self.rebuild(self.config, reload=False))
        self._httpd = self._make_http_server()
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        click.echo(f"Serving {self.output_dir} at http://localhost:{self.http_port}")
        self.watcher.start()
        try:
            while not self.watcher.stopped:
                time.sleep(1)
        except KeyboardInterrupt:
            click.echo("Stopping...")
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop the watcher, the HTTP listener and the WebSocket loop."""
        self.watcher.stop()
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)

    def _make_http_server(self) -> ThreadingHTTPServer:
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        return ThreadingHTTPServer((self.host, self.http_port), handler)

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            click.echo(f"WebSocket server failed to start (port {self.ws_port}): {exc}", err=True)
        except RuntimeError:
            # Raised by run_until_complete when stop() halts the loop.
            pass

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host or "0.0.0.0", self.ws_port):
            await asyncio.Future()  # Run forever

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        if not self._loop.is_running():
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def rebuild(
        self,
        config: SiteConfig,
        cancel: threading.Event | None = None,
        reload: bool = True,
    ) -> BuildReport:
        """Build into the staging directory and swap it into place.

        A cancelled build leaves the served output untouched.

        Args:
            config: Site configuration to build.
            cancel: Optional event that stops the build between files.
            reload: Whether to tell connected browsers to reload.

        Returns:
            BuildReport, with ``output_dir`` pointing at the served directory.
        """
        staging = self._prepare_staging_dir()
        try:
            report = build_site(config, output_dir_override=staging, cancel=cancel)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        if report.cancelled:
            shutil.rmtree(staging, ignore_errors=True)
            return report
        self._activate_staging(staging)
        report.output_dir = self.output_dir
        if reload:
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
        return report

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True, exist_ok=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        target = self.output_dir
        backup = self._backup_dir
        if backup.exists():
            shutil.rmtree(backup)
        if target.exists():
            os.replace(target, backup)
        os.replace(staging, target)
        shutil.rmtree(backup, ignore_errors=True)

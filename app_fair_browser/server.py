#!/usr/bin/env python3
"""
App Fair Browser Web Server

A simple web server exposing the loaded apps, workflow runs and settings via a JSON API.
"""

import http.server
import json
import logging
import re
import threading
import time
import urllib.parse
from http import HTTPStatus
from typing import Optional

from .app import AppEnv, create_app_env
from .settings import SettingsError, get_settings_store
from .sidebar import SidebarCategory, apps_in_category, delete_item
from .tables import ItemTable

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 1024 * 1024


class BrowserServer(http.server.HTTPServer):
    """HTTP server holding the shared app environment."""

    def __init__(self, server_address, app_env: AppEnv, db_path: Optional[str] = None):
        super().__init__(server_address, BrowserRequestHandler)
        self.app_env = app_env
        self.db_path = db_path


class BrowserRequestHandler(http.server.BaseHTTPRequestHandler):
    """A custom request handler serving the app environment as JSON."""

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} - {format % args}")

    def _send_json_response(self, data: dict, status: HTTPStatus = HTTPStatus.OK):
        """Send a JSON response with consistent headers."""
        body = json.dumps(data, indent=2).encode('utf-8')
        self.send_response(status)
        self.send_header("Content-type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_json_error(self, message: str, status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR):
        """Send a JSON error response."""
        self._send_json_response({"success": False, "message": message}, status)

    def _read_json_body(self) -> dict:
        content_length = int(self.headers.get('Content-Length', 0))
        if content_length > MAX_BODY_SIZE:
            raise ValueError("Request body too large")
        post_data = self.rfile.read(content_length)
        data = json.loads(post_data.decode('utf-8') or "{}")
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")
        return data

    @property
    def app_env(self) -> AppEnv:
        return self.server.app_env

    def _generate_badge_svg(self, label: str, message: str, color: str) -> str:
        """Generate an SVG badge with the given parameters."""
        label_width = len(label) * 7 + 10
        message_width = len(message) * 7 + 10
        total_width = label_width + message_width

        svg = f'''<svg xmlns="http://www.w3.org/2000/svg" width="{total_width}" height="20">
        <mask id="a">
            <rect width="{total_width}" height="20" rx="3" fill="#fff"/>
        </mask>
        <g mask="url(#a)">
            <rect width="{label_width}" height="20" fill="#555"/>
            <rect x="{label_width}" width="{message_width}" height="20" fill="{color}"/>
        </g>
        <g fill="#fff" text-anchor="middle" font-family="DejaVu Sans,Verdana,Geneva,sans-serif" font-size="11">
            <text x="{label_width/2}" y="14">{label}</text>
            <text x="{label_width + message_width/2}" y="14">{message}</text>
        </g>
        </svg>'''
        return svg

    def do_GET(self):
        """Handle GET requests."""
        parsed_path = urllib.parse.urlparse(self.path)
        path = parsed_path.path
        query_params = urllib.parse.parse_qs(parsed_path.query)

        if path == "/api/apps":
            self.send_apps(query_params)
        elif match := re.match(r"/api/apps/(\d+)$", path):
            self.send_app(int(match.group(1)))
        elif path == "/api/runs":
            self.send_runs(query_params)
        elif path == "/api/errors":
            self.send_errors()
        elif path == "/api/settings":
            self.send_settings()
        elif path == "/api/reload":
            self.send_reload_response()
        elif match := re.match(r"/badge/(.+)/downloads\.svg$", path):
            self.send_badge(match.group(1))
        else:
            self.send_error(HTTPStatus.NOT_FOUND, "Endpoint not found")

    def do_POST(self):
        """Handle POST requests."""
        path = urllib.parse.urlparse(self.path).path

        if path == "/api/favorites/add":
            self.update_favorite(True)
        elif path == "/api/favorites/remove":
            self.update_favorite(False)
        elif path == "/api/settings":
            self.update_settings()
        elif path == "/api/items/remove":
            self.remove_item()
        else:
            self.send_error(HTTPStatus.NOT_FOUND, "Endpoint not found")

    def _request_table(self, table: ItemTable, query_params: dict) -> ItemTable:
        """Copy of the shared table with this request's search and sort applied."""
        table = table.copy()
        table.search_text = query_params.get('search', [''])[0]
        sort = query_params.get('sort', [None])[0]
        if sort:
            table.sort_by(sort, reverse=query_params.get('order', ['forward'])[0] == 'reverse')
        return table

    def send_apps(self, query_params: dict):
        """Send the apps of a sidebar category."""
        try:
            category = SidebarCategory(query_params.get('category', ['all'])[0])
            favorites = []
            if category is SidebarCategory.FAVORITES:
                with get_settings_store(self.server.db_path) as store:
                    store.setup_database()
                    favorites = store.get_favorites()
            with self.app_env.lock:
                releases = self._request_table(self.app_env.releases, query_params)
            apps = apps_in_category(self.app_env, category, favorites, table=releases)
            self._send_json_response({
                "success": True,
                "category": category.value,
                "apps": [app.to_dict() for app in apps],
            })
        except (ValueError, KeyError) as e:
            self._send_json_error(str(e), HTTPStatus.BAD_REQUEST)

    def send_app(self, release_id: int):
        app = self.app_env.find_app(str(release_id))
        if app is None:
            self._send_json_error(f"No app with release id {release_id}", HTTPStatus.NOT_FOUND)
            return
        data = app.to_dict()
        data["body"] = app.release.body
        data["assets"] = [{"name": asset.name, "size": asset.size, "download_count": asset.download_count,
                           "url": asset.browser_download_url} for asset in app.release.assets]
        self._send_json_response({"success": True, "app": data})

    def send_runs(self, query_params: dict):
        try:
            with self.app_env.lock:
                runs = self._request_table(self.app_env.runs, query_params).rows()
            self._send_json_response({
                "success": True,
                "runs": [{
                    "id": run.id,
                    "name": run.name,
                    "run_number": run.run_number,
                    "status": run.status,
                    "conclusion": run.conclusion,
                    "author": run.head_commit.author.name,
                    "head_sha": run.head_sha,
                    "created_at": run.created_at.isoformat() if run.created_at else None,
                    "html_url": run.html_url,
                } for run in runs],
            })
        except KeyError as e:
            self._send_json_error(str(e), HTTPStatus.BAD_REQUEST)

    def send_errors(self):
        self._send_json_response({
            "success": True,
            "errors": [{"selection": str(selection) if selection else None, "message": str(error)}
                       for selection, error in self.app_env.errors],
        })

    def send_reload_response(self):
        """Run a reload and send a response."""
        logger.info("Reload requested from web API.")
        success = self.app_env.reload(reload=True)
        status = HTTPStatus.OK if success else HTTPStatus.BAD_GATEWAY
        self._send_json_response({
            "success": success,
            "apps": len(self.app_env.releases.items),
            "runs": len(self.app_env.runs.items),
            "timestamp": time.strftime('%Y-%m-%d %H:%M:%S'),
        }, status)

    def send_settings(self):
        self._send_json_response({"success": True, "settings": self.app_env.settings.to_dict()})

    def send_badge(self, login: str):
        """Serve an SVG badge with the total downloads of an app."""
        app = self.app_env.find_app(login)
        if app is None:
            self.send_error(HTTPStatus.NOT_FOUND, "App not found")
            return
        downloads = sum(asset.download_count for asset in app.release.assets)
        svg_content = self._generate_badge_svg("downloads", f"{downloads:,}", "blue").encode('utf-8')

        self.send_response(HTTPStatus.OK)
        self.send_header("Content-type", "image/svg+xml")
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        self.send_header("Content-Length", str(len(svg_content)))
        self.end_headers()
        self.wfile.write(svg_content)

    def update_favorite(self, favorite: bool):
        """Handle marking or unmarking a favorite app."""
        try:
            data = self._read_json_body()
            release_id = data.get('release_id')
            if not isinstance(release_id, int):
                self._send_json_error("Missing integer 'release_id' in request body", HTTPStatus.BAD_REQUEST)
                return
            with get_settings_store(self.server.db_path) as store:
                store.setup_database()
                success = store.add_favorite(release_id) if favorite else store.remove_favorite(release_id)
            if success:
                self._send_json_response({"success": True, "release_id": release_id, "favorite": favorite})
            else:
                self._send_json_error(f"Failed to update favorite {release_id}")
        except (ValueError, json.JSONDecodeError) as e:
            self._send_json_error(f"Invalid request body: {e}", HTTPStatus.BAD_REQUEST)

    def remove_item(self):
        """Remove an app or run from the loaded lists until the next reload."""
        try:
            item_id = self._read_json_body().get('id')
        except (ValueError, json.JSONDecodeError) as e:
            self._send_json_error(f"Invalid request body: {e}", HTTPStatus.BAD_REQUEST)
            return
        if not isinstance(item_id, int):
            self._send_json_error("Missing integer 'id' in request body", HTTPStatus.BAD_REQUEST)
            return
        with self.app_env.lock:
            removed = delete_item(self.app_env, item_id)
        if removed:
            self._send_json_response({"success": True, "id": item_id})
        else:
            self._send_json_error(f"No listed item with id {item_id}", HTTPStatus.NOT_FOUND)

    def update_settings(self):
        """Store new settings; they apply to the next server start."""
        try:
            data = self._read_json_body()
            for key, value in data.items():
                if not isinstance(value, str):
                    raise ValueError(f"Value of '{key}' must be a string")
            with get_settings_store(self.server.db_path) as store:
                store.setup_database()
                for key, value in data.items():
                    store.set(key, value)
            self._send_json_response({"success": True, "updated": sorted(data)})
        except SettingsError as e:
            self._send_json_error(str(e), HTTPStatus.BAD_REQUEST)
        except (ValueError, json.JSONDecodeError) as e:
            self._send_json_error(f"Invalid request body: {e}", HTTPStatus.BAD_REQUEST)


class BackgroundReloadThread(threading.Thread):
    """A background thread to periodically reload the app environment."""

    def __init__(self, app_env: AppEnv, interval: int = 900):
        """
        Initialize the background reload thread.

        Args:
            app_env: Environment to reload
            interval: Reload interval in seconds (default: 15 minutes)
        """
        super().__init__(daemon=True)
        self.app_env = app_env
        self.interval = interval
        self._stopped = threading.Event()

    def run(self):
        """Run the background reload loop."""
        logger.info(f"Starting background reload thread (interval: {self.interval}s)")
        while not self._stopped.wait(self.interval):
            logger.info("Running scheduled reload...")
            if self.app_env.reload():
                logger.info("Scheduled reload completed successfully")
            else:
                logger.error("Scheduled reload finished with errors")

    def stop(self):
        """Stop the background reload thread."""
        self._stopped.set()


def run_server(port: int = 8080, db_path: Optional[str] = None,
               enable_background_reload: bool = True, reload_interval: int = 900):
    """
    Run the browser web server.

    Args:
        port: Port to listen on (default: 8080)
        db_path: Settings database path
        enable_background_reload: Whether to reload periodically (default: True)
        reload_interval: Reload interval in seconds (default: 900)
    """
    app_env = create_app_env(db_path)
    app_env.reload()

    reload_thread = None
    if enable_background_reload:
        reload_thread = BackgroundReloadThread(app_env, reload_interval)
        reload_thread.start()

    with BrowserServer(("", port), app_env, db_path) as httpd:
        logger.info(f"Starting server on port {port}")
        logger.info(f"Visit http://localhost:{port}/api/apps to list apps")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Server stopped by user")
        finally:
            if reload_thread:
                reload_thread.stop()

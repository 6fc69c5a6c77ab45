"""Liveness, readiness and Prometheus metrics over HTTP.

``/healthz`` answers as soon as the server runs. ``/readyz`` answers 503
until :func:`mark_ready` is called once startup has finished. Every other
path is served by the Prometheus exposition app.
"""

from __future__ import annotations

import json
import threading
from typing import Any

from prometheus_client import make_wsgi_app
from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response

_ready = threading.Event()


def mark_ready() -> None:
    _ready.set()


def mark_not_ready() -> None:
    _ready.clear()


def is_ready() -> bool:
    return _ready.is_set()


def _json(payload: dict[str, Any], status: int) -> Response:
    return Response(json.dumps(payload, separators=(",", ":")), status=status, mimetype="application/json")


def create_combined_wsgi_app() -> Any:
    """Build the WSGI app serving probes and metrics on one port."""
    metrics_app = make_wsgi_app()

    def app(environ: dict[str, Any], start_response: Any) -> Any:
        request = Request(environ)
        if request.path == "/healthz":
            response = _json({"status": "ok"}, 200)
        elif request.path == "/readyz":
            response = _json({"status": "ready"}, 200) if is_ready() else _json({"status": "starting"}, 503)
        else:
            return metrics_app(environ, start_response)
        return response(environ, start_response)

    return app


def start_metrics_server(port: int, host: str = "") -> threading.Thread:
    """Serve probes and metrics from a daemon thread.

    Returns:
        The thread running the server
    """
    server = make_server(host, port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, name="metrics-server", daemon=True)
    thread.start()
    return thread

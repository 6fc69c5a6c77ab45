"""Tests for health check endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from registry_operator import health
from registry_operator.health import create_combined_wsgi_app, start_metrics_server


def _environ(path: str) -> dict[str, str]:
    return {
        "REQUEST_METHOD": "GET",
        "PATH_INFO": path,
        "SCRIPT_NAME": "",
        "SERVER_NAME": "localhost",
        "SERVER_PORT": "8080",
        "wsgi.url_scheme": "http",
    }


class TestCombinedWsgiApp:
    """Test cases for combined WSGI application."""

    @pytest.fixture(autouse=True)
    def not_ready(self):
        health.mark_not_ready()
        yield
        health.mark_not_ready()

    def test_healthz(self):
        """Test combined app handles /healthz."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        result = app(_environ("/healthz"), start_response)

        assert b'"status":"ok"' in b"".join(result)
        assert "200" in start_response.call_args[0][0]

    def test_readyz_before_startup(self):
        """Test /readyz fails until startup has finished."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        result = app(_environ("/readyz"), start_response)

        assert b'"status":"starting"' in b"".join(result)
        assert "503" in start_response.call_args[0][0]

    def test_readyz(self):
        """Test /readyz once ready."""
        health.mark_ready()
        app = create_combined_wsgi_app()

        result = app(_environ("/readyz"), MagicMock())

        assert b'"status":"ready"' in b"".join(result)

    def test_content_type_is_json(self):
        """Test that content type is application/json."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        app(_environ("/healthz"), start_response)

        headers = start_response.call_args[0][1]
        content_type = [h for h in headers if h[0].lower() == "content-type"]
        assert "application/json" in content_type[0][1]

    @patch("registry_operator.health.make_wsgi_app")
    def test_delegates_to_metrics(self, mock_make_wsgi):
        """Test combined app delegates everything else to prometheus."""
        mock_metrics_app = MagicMock(return_value=[b"metrics data"])
        mock_make_wsgi.return_value = mock_metrics_app
        app = create_combined_wsgi_app()

        result = app(_environ("/metrics"), MagicMock())

        assert result == [b"metrics data"]
        assert mock_metrics_app.called


class TestStartMetricsServer:
    """Test cases for the background server."""

    @patch("registry_operator.health.make_server")
    @patch("registry_operator.health.threading.Thread")
    def test_starts_server(self, mock_thread, mock_make_server):
        """Test that the server is created on the port and started."""
        mock_server = MagicMock()
        mock_make_server.return_value = mock_server

        start_metrics_server(8080)

        assert mock_make_server.call_args[0][1] == 8080
        mock_thread.assert_called_once_with(target=mock_server.serve_forever, name="metrics-server", daemon=True)
        mock_thread.return_value.start.assert_called_once()

"""Unit tests for listener socket creation and TLS loading."""

import logging
import ssl
from unittest.mock import MagicMock, patch

import pytest

from static_server.bootstrap.config import ListenerAddress
from static_server.bootstrap.socket_factory import create_server_socket
from static_server.domain.errors import ListenerError


def test_create_server_socket_logs_tls_error(caplog):
    """TLS errors during socket creation are logged as CRITICAL and raised."""
    caplog.set_level(logging.CRITICAL)

    with patch(
        "static_server.bootstrap.socket_factory.socket.create_server"
    ) as mock_create_server, patch(
        "static_server.bootstrap.socket_factory.ssl.SSLContext"
    ) as mock_ssl_context:
        mock_server_sock = MagicMock()
        mock_create_server.return_value = mock_server_sock

        context_instance = MagicMock()
        context_instance.load_cert_chain.side_effect = ssl.SSLError(
            "Invalid certificate"
        )
        mock_ssl_context.return_value = context_instance

        with pytest.raises(ListenerError):
            create_server_socket(
                ListenerAddress("localhost", 8443), "fake_cert.pem", "fake_key.pem"
            )

        mock_server_sock.close.assert_called_once()

    critical_record = next(
        (r for r in caplog.records if r.levelno == logging.CRITICAL), None
    )
    assert critical_record is not None
    assert "Failed to load TLS certificates" in critical_record.message
    assert "Invalid certificate" in str(getattr(critical_record, "error", ""))


def test_missing_certificate_file_raises(tmp_path):
    with pytest.raises(ListenerError):
        create_server_socket(
            ListenerAddress("127.0.0.1", 0), str(tmp_path / "absent.crt")
        )


def test_plain_socket_binds_ephemeral_port():
    server_socket = create_server_socket(ListenerAddress("127.0.0.1", 0))
    try:
        host, port = server_socket.getsockname()[:2]
        assert host == "127.0.0.1"
        assert port > 0
        assert server_socket.gettimeout() == 0.5
    finally:
        server_socket.close()


def test_bind_failure_raises_listener_error(caplog):
    caplog.set_level(logging.CRITICAL)
    with patch(
        "static_server.bootstrap.socket_factory.socket.create_server",
        side_effect=OSError("Address already in use"),
    ):
        with pytest.raises(ListenerError):
            create_server_socket(ListenerAddress("127.0.0.1", 8080))

    assert any(
        getattr(record, "event", None) == "listen_failed" for record in caplog.records
    )

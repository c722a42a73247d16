"""Shared fixtures: local HTTP/HTTPS upstreams and sample agent payloads."""

import ssl
from pathlib import Path

import pytest
from pytest_httpserver import HTTPServer

from mesos_exporter.collector import RecordDecoder
from mesos_exporter.http_client import SecureFetcher

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def fixture_path(name: str) -> str:
    return str(FIXTURES / name)


@pytest.fixture(scope="session")
def httpserver_listen_address():
    # bind to the IPv4 literal so "localhost" is a different redirect hostname
    return ("127.0.0.1", 0)


@pytest.fixture(scope="session")
def tls_httpserver():
    """HTTPS upstream presenting a certificate issued by trusted_ca.pem."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(fixture_path("server.pem"), fixture_path("server.key"))
    server = HTTPServer(host="127.0.0.1", port=0, ssl_context=context)
    server.start()
    yield server
    server.clear()
    if server.is_running():
        server.stop()


@pytest.fixture
def tls_server(tls_httpserver):
    yield tls_httpserver
    tls_httpserver.clear()


@pytest.fixture
def fetcher():
    f = SecureFetcher(timeout=2)
    yield f
    f.close()


@pytest.fixture
def decoder(httpserver, fetcher):
    return RecordDecoder(fetcher, httpserver.url_for("/"))


@pytest.fixture
def executor_stats():
    return [
        {
            "executor_id": "e1",
            "executor_name": "command executor",
            "framework_id": "f1",
            "source": "s1",
            "statistics": {
                "cpus_limit": 2.0,
                "cpus_system_time_secs": 1.5,
                "cpus_user_time_secs": 12.25,
                "mem_limit_bytes": 2097152,
                "mem_rss_bytes": 1048576,
                "net_rx_bytes": 1000,
                "net_rx_dropped": 1,
                "net_rx_errors": 2,
                "net_rx_packets": 30,
                "net_tx_bytes": 2000,
                "net_tx_dropped": 3,
                "net_tx_errors": 4,
                "net_tx_packets": 50,
            },
            "tasks": [{"id": "t1", "name": "web"}],
        },
        {
            "executor_id": "e2",
            "framework_id": "f2",
            "source": "s2",
            "statistics": None,
        },
    ]

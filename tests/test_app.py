"""Tests for registry assembly, the WSGI app and startup failures."""

from wsgiref.util import setup_testing_defaults

import pytest
from prometheus_client import CollectorRegistry
from prometheus_client.parser import text_string_to_metric_families

from mesos_exporter import app as app_module
from mesos_exporter.app import build_registry, main, make_app
from mesos_exporter.config import ExporterConfig
from mesos_exporter.trust import TrustStoreError

from tests.conftest import fixture_path


def _get(wsgi_app, path):
    environ = {"PATH_INFO": path}
    setup_testing_defaults(environ)
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    body = b"".join(wsgi_app(environ, start_response))
    return captured["status"], captured["headers"], body.decode("utf-8")


def _parse(body):
    families = list(text_string_to_metric_families(body))
    values = {
        (s.name, tuple(sorted(s.labels.items()))): s.value
        for family in families
        for s in family.samples
    }
    return families, values


class TestBuildRegistry:
    def test_slave_mode(self, httpserver, executor_stats):
        httpserver.expect_request("/monitor/statistics").respond_with_json(executor_stats)
        httpserver.expect_request("/metrics/snapshot").respond_with_json({"slave/registered": 1})
        registry = build_registry(ExporterConfig(slave_url=httpserver.url_for("/"), timeout=2))

        assert registry.get_sample_value("mesos_slave_registered") == 1.0
        assert registry.get_sample_value(
            "mesos_slave_stats_cpus_limit", {"id": "e1", "framework_id": "f1", "source": "s1"}
        ) == 2.0
        assert registry.get_sample_value("mesos_collector_errors_total") == 0.0
        assert [m.name for m in registry.collect()][-1] == "mesos_collector_errors"

    def test_master_mode(self, httpserver):
        httpserver.expect_request("/metrics/snapshot").respond_with_json({"master/elected": 1})
        registry = build_registry(ExporterConfig(master_url=httpserver.url_for("/"), timeout=2))

        assert registry.get_sample_value("mesos_master_elected") == 1.0
        assert registry.get_sample_value("mesos_slave_registered") is None
        assert [p for p, _ in httpserver.log if p.path == "/monitor/statistics"] == []

    def test_failing_upstream_counts_errors(self, httpserver):
        httpserver.expect_request("/metrics/snapshot").respond_with_data("boom", status=503)
        httpserver.expect_request("/monitor/statistics").respond_with_json({"not": "an array"})
        registry = build_registry(ExporterConfig(slave_url=httpserver.url_for("/"), timeout=2))

        assert registry.get_sample_value("mesos_slave_registered") is None
        assert registry.get_sample_value("mesos_collector_errors_total") == 2.0

    def test_bad_trust_anchor_fails_startup(self):
        cfg = ExporterConfig(master_url="https://master:5050", trusted_certs=(fixture_path("not_a_cert.pem"),))
        with pytest.raises(TrustStoreError):
            build_registry(cfg)

    def test_uses_given_registry(self, httpserver):
        registry = CollectorRegistry()
        assert build_registry(ExporterConfig(master_url=httpserver.url_for("/")), registry) is registry


class TestApp:
    @pytest.fixture
    def wsgi_app(self, httpserver, executor_stats):
        httpserver.expect_request("/monitor/statistics").respond_with_json(executor_stats)
        httpserver.expect_request("/metrics/snapshot").respond_with_json({"slave/uptime_secs": 30})
        return make_app(build_registry(ExporterConfig(slave_url=httpserver.url_for("/"), timeout=2)))

    def test_metrics(self, wsgi_app):
        status, headers, body = _get(wsgi_app, "/metrics")
        assert status == "200 OK"
        assert headers["Content-Type"].startswith("text/plain")
        families, values = _parse(body)
        e1 = (("framework_id", "f1"), ("id", "e1"), ("source", "s1"))

        assert {f.name: f.type for f in families}["mesos_slave_stats_cpus_limit"] == "gauge"
        assert values[("mesos_slave_stats_cpus_limit", e1)] == 2.0
        assert values[("mesos_slave_stats_mem_rss_bytes_total", e1)] == 1048576.0
        assert values[("mesos_slave_uptime_seconds", ())] == 30.0

    def test_metrics_with_broken_upstream(self, httpserver):
        httpserver.expect_request("/metrics/snapshot").respond_with_data("boom", status=500)
        wsgi_app = make_app(build_registry(ExporterConfig(master_url=httpserver.url_for("/"), timeout=2)))

        status, _, body = _get(wsgi_app, "/metrics")

        assert status == "200 OK"
        families, values = _parse(body)
        # the failure shows up in the same response it broke
        assert values[("mesos_collector_errors_total", ())] == 1.0
        assert "mesos_master_elected" not in {f.name for f in families}

    def test_health(self, wsgi_app):
        assert _get(wsgi_app, "/health")[::2] == ("200 OK", "ok\n")

    def test_landing_page(self, wsgi_app):
        status, headers, body = _get(wsgi_app, "/")
        assert status == "200 OK"
        assert '<a href="/metrics">' in body

    def test_not_found(self, wsgi_app):
        assert _get(wsgi_app, "/nope")[0] == "404 Not Found"


class TestMain:
    @pytest.fixture(autouse=True)
    def no_config_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr("mesos_exporter.config.CONFIG_PATH", str(tmp_path / "absent.yml"))
        for name in ("MESOS_EXPORTER_CONFIG", "MESOS_EXPORTER_MASTER", "MESOS_EXPORTER_SLAVE"):
            monkeypatch.delenv(name, raising=False)

    def test_master_and_slave_conflict_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["--master", "http://m:5050", "--slave", "http://s:5051"])
        assert exc_info.value.code == 1

    def test_bad_trust_anchor_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["--master", "https://m:5050", "--trusted-certs", fixture_path("not_a_cert.pem")])
        assert exc_info.value.code == 1

    def test_serves_configured_address(self, monkeypatch):
        calls = {}

        class FakeServer:
            def serve_forever(self):
                raise KeyboardInterrupt

            def server_close(self):
                calls["closed"] = True

        def fake_make_server(host, port, wsgi_app):
            calls["address"] = (host, port)
            return FakeServer()

        monkeypatch.setattr(app_module, "make_server", fake_make_server)
        main(["--master", "http://m:5050", "--addr", "127.0.0.1:9999", "--timeout", "3"])

        assert calls == {"address": ("127.0.0.1", 9999), "closed": True}

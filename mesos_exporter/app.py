#!/usr/bin/env python3
import argparse
import logging
import os
import sys
from typing import Callable, List, Optional, Sequence, Tuple
from wsgiref.simple_server import make_server

from prometheus_client import CollectorRegistry, Counter, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from mesos_exporter.collector import JSONCollector, RecordDecoder
from mesos_exporter.config import ConfigError, ExporterConfig, load_config, parse_listen, parse_timeout, split_list
from mesos_exporter.http_client import SecureFetcher
from mesos_exporter.slave_monitor import SlaveMonitorCollector
from mesos_exporter.snapshot import MASTER_SNAPSHOT_METRICS, SLAVE_SNAPSHOT_METRICS, SnapshotCollector
from mesos_exporter.trust import TrustStoreError, build_cert_pool, build_trusted_redirects

logger = logging.getLogger(__name__)

LANDING_PAGE = b"""<html>
<head><title>Mesos Exporter</title></head>
<body>
<h1>Mesos Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
</body>
</html>
"""

CollectorFactory = Callable[[RecordDecoder, Counter], JSONCollector]

MASTER_COLLECTORS: Tuple[CollectorFactory, ...] = (
    lambda d, errors: SnapshotCollector(d, MASTER_SNAPSHOT_METRICS, errors),
)

SLAVE_COLLECTORS: Tuple[CollectorFactory, ...] = (
    lambda d, errors: SnapshotCollector(d, SLAVE_SNAPSHOT_METRICS, errors),
    lambda d, errors: SlaveMonitorCollector(d, errors=errors),
)


def build_registry(cfg: ExporterConfig, registry: Optional[CollectorRegistry] = None) -> CollectorRegistry:
    """Register every collector of the configured mode.

    Trust anchors are loaded here, so a bad PEM file fails startup with
    TrustStoreError before anything is served.
    """
    registry = registry or CollectorRegistry()
    factories = MASTER_COLLECTORS if cfg.mode == "master" else SLAVE_COLLECTORS

    cert_pool = build_cert_pool(cfg.trusted_certs)
    trusted_redirects = build_trusted_redirects(cfg.trusted_redirects)

    # registered after the collectors so a scrape renders the failures it caused
    errors = Counter(
        "mesos_collector_errors",
        "Total number of internal mesos-collector errors.",
        registry=None,
    )

    for factory in factories:
        # one client per collector, trust configuration shared read-only
        fetcher = SecureFetcher(
            timeout=cfg.timeout,
            cert_pool=cert_pool,
            trusted_redirects=trusted_redirects,
            credentials=cfg.credentials,
        )
        registry.register(factory(RecordDecoder(fetcher, cfg.target_url), errors))
    registry.register(errors)
    return registry


def _http_response(start_response, status: str, headers: List[Tuple[str, str]], body: bytes):
    start_response(status, headers)
    return [body]


def make_app(registry: CollectorRegistry):
    def app(environ, start_response):
        path = environ.get("PATH_INFO", "/")

        if path == "/":
            return _http_response(
                start_response,
                "200 OK",
                [("Content-Type", "text/html; charset=utf-8")],
                LANDING_PAGE,
            )

        if path == "/health":
            return _http_response(
                start_response,
                "200 OK",
                [("Content-Type", "text/plain; charset=utf-8")],
                b"ok\n",
            )

        if path != "/metrics":
            return _http_response(
                start_response,
                "404 Not Found",
                [("Content-Type", "text/plain; charset=utf-8")],
                b"not found\n",
            )

        # collectors swallow upstream failures, so this always renders
        output = generate_latest(registry)
        return _http_response(
            start_response,
            "200 OK",
            [("Content-Type", CONTENT_TYPE_LATEST)],
            output,
        )

    return app


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="mesos-exporter", description="Prometheus exporter for Mesos master and agent statistics.")
    ap.add_argument("--config", help="YAML config file (ENV MESOS_EXPORTER_CONFIG).")
    ap.add_argument("--addr", help="Address to listen on, host:port (ENV MESOS_EXPORTER_LISTEN).")
    ap.add_argument("--master", help="Expose metrics from master running on this URL.")
    ap.add_argument("--slave", help="Expose metrics from slave running on this URL.")
    ap.add_argument("--timeout", help="Polling timeout in seconds.")
    ap.add_argument("--trusted-certs",
                    help="Comma-separated list of certificates (.pem files) trusted for requests to Mesos endpoints.")
    ap.add_argument("--trusted-redirects",
                    help="Comma-separated list of trusted hosts where metrics requests can be redirected.")
    return ap.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
    )
    args = _parse_args(argv)

    try:
        cfg = load_config(args.config).override(
            master_url=args.master,
            slave_url=args.slave,
            timeout=None if args.timeout is None else parse_timeout(args.timeout),
            trusted_certs=split_list(args.trusted_certs),
            trusted_redirects=split_list(args.trusted_redirects),
        )
        if args.addr is not None:
            host, port = parse_listen(args.addr)
            cfg = cfg.override(listen_addr=host, listen_port=port)
        registry = build_registry(cfg)
    except (ConfigError, TrustStoreError) as e:
        logger.critical("%s", e)
        sys.exit(1)

    logger.info("Exposing %s metrics from %s on %s:%d", cfg.mode, cfg.target_url, cfg.listen_addr, cfg.listen_port)
    httpd = make_server(cfg.listen_addr, cfg.listen_port, make_app(registry))
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        httpd.server_close()


if __name__ == "__main__":
    main()

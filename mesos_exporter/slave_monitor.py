"""Per-executor resource statistics from the agent's /monitor/statistics endpoint."""
from typing import List, Optional, Sequence, Tuple

from prometheus_client import Counter
from pydantic import BaseModel, Field, field_validator

from mesos_exporter.collector import JSONCollector, MetricKind, MetricSpec, RecordDecoder


class Statistics(BaseModel):
    cpus_limit: float = 0.0
    cpus_system_time_secs: float = 0.0
    cpus_user_time_secs: float = 0.0
    cpus_throttled_time_secs: float = 0.0

    mem_limit_bytes: float = 0.0
    mem_rss_bytes: float = 0.0

    net_rx_bytes: float = 0.0
    net_rx_dropped: float = 0.0
    net_rx_errors: float = 0.0
    net_rx_packets: float = 0.0
    net_tx_bytes: float = 0.0
    net_tx_dropped: float = 0.0
    net_tx_errors: float = 0.0
    net_tx_packets: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_zero(cls, v):
        return 0.0 if v is None else v


class Executor(BaseModel):
    executor_id: str = ""
    executor_name: str = ""
    framework_id: str = ""
    source: str = ""
    statistics: Statistics = Field(default_factory=Statistics)

    @field_validator("executor_id", "executor_name", "framework_id", "source", mode="before")
    @classmethod
    def _null_as_empty(cls, v):
        return "" if v is None else v

    @field_validator("statistics", mode="before")
    @classmethod
    def _null_statistics(cls, v):
        # executors that have not reported yet carry "statistics": null
        return {} if v is None else v


LABELS: Tuple[str, ...] = ("id", "framework_id", "source")


def _stat(name: str, help: str, kind: MetricKind, field_name: str) -> MetricSpec:
    return MetricSpec(
        name=f"mesos_slave_stats_{name}",
        help=help,
        labels=LABELS,
        kind=kind,
        extract=lambda e: getattr(e.statistics, field_name),
    )


SLAVE_MONITOR_METRICS: Tuple[MetricSpec, ...] = (
    # CPU
    _stat("cpus_limit", "Current limit of CPUs for task", MetricKind.GAUGE, "cpus_limit"),
    _stat("cpu_system_seconds_total", "Total system CPU seconds", MetricKind.COUNTER, "cpus_system_time_secs"),
    _stat("cpu_user_seconds_total", "Total user CPU seconds", MetricKind.COUNTER, "cpus_user_time_secs"),
    _stat("cpu_throttled_seconds_total", "Total time CPU was throttled", MetricKind.COUNTER, "cpus_throttled_time_secs"),
    # Memory
    _stat("mem_limit_bytes", "Current memory limit in bytes", MetricKind.COUNTER, "mem_limit_bytes"),
    _stat("mem_rss_bytes", "Current rss memory usage", MetricKind.COUNTER, "mem_rss_bytes"),
    # Network RX
    _stat("network_receive_bytes_total", "Total bytes received", MetricKind.COUNTER, "net_rx_bytes"),
    _stat("network_receive_dropped_total", "Total packets dropped while receiving", MetricKind.COUNTER, "net_rx_dropped"),
    _stat("network_receive_errors_total", "Total errors while receiving", MetricKind.COUNTER, "net_rx_errors"),
    _stat("network_receive_packets_total", "Total packets received", MetricKind.COUNTER, "net_rx_packets"),
    # Network TX
    _stat("network_transmit_bytes_total", "Total bytes transmitted", MetricKind.COUNTER, "net_tx_bytes"),
    _stat("network_transmit_dropped_total", "Total packets dropped while transmitting", MetricKind.COUNTER, "net_tx_dropped"),
    _stat("network_transmit_errors_total", "Total errors while transmitting", MetricKind.COUNTER, "net_tx_errors"),
    _stat("network_transmit_packets_total", "Total packets transmitted", MetricKind.COUNTER, "net_tx_packets"),
)


class SlaveMonitorCollector(JSONCollector):
    endpoint = "/monitor/statistics"
    shape = List[Executor]

    def __init__(
        self,
        decoder: RecordDecoder,
        metrics: Sequence[MetricSpec] = SLAVE_MONITOR_METRICS,
        errors: Optional[Counter] = None,
    ):
        super().__init__(decoder, metrics, errors)

    def label_values(self, record: Executor) -> Tuple[str, ...]:
        return record.executor_id, record.framework_id, record.source

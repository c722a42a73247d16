"""Flat ``/metrics/snapshot`` counters and gauges of the master and the agent."""
from typing import Any, Dict, Iterable, Tuple

from mesos_exporter.collector import JSONCollector, MetricKind, MetricSpec

MEGABYTES = 1024 * 1024

GAUGE = MetricKind.GAUGE
COUNTER = MetricKind.COUNTER


def _key(name: str, help: str, kind: MetricKind, key: str, scale: float = 1.0) -> MetricSpec:
    return MetricSpec(
        name=name,
        help=help,
        labels=(),
        kind=kind,
        extract=lambda snapshot: snapshot.get(key, 0.0) * scale,
    )


MASTER_SNAPSHOT_METRICS: Tuple[MetricSpec, ...] = (
    _key("mesos_master_uptime_seconds", "Number of seconds the master process is running", GAUGE, "master/uptime_secs"),
    _key("mesos_master_elected", "1 if this master is the elected leader, 0 otherwise", GAUGE, "master/elected"),
    # Resources
    _key("mesos_master_cpus", "Number of CPUs offered by all agents", GAUGE, "master/cpus_total"),
    _key("mesos_master_cpus_used", "Number of allocated CPUs", GAUGE, "master/cpus_used"),
    _key("mesos_master_mem_bytes", "Memory offered by all agents in bytes", GAUGE, "master/mem_total", MEGABYTES),
    _key("mesos_master_mem_used_bytes", "Allocated memory in bytes", GAUGE, "master/mem_used", MEGABYTES),
    _key("mesos_master_disk_bytes", "Disk offered by all agents in bytes", GAUGE, "master/disk_total", MEGABYTES),
    _key("mesos_master_disk_used_bytes", "Allocated disk in bytes", GAUGE, "master/disk_used", MEGABYTES),
    # Agents
    _key("mesos_master_slaves_active", "Number of active agents", GAUGE, "master/slaves_active"),
    _key("mesos_master_slaves_inactive", "Number of inactive agents", GAUGE, "master/slaves_inactive"),
    _key("mesos_master_slaves_connected", "Number of connected agents", GAUGE, "master/slaves_connected"),
    _key("mesos_master_slaves_disconnected", "Number of disconnected agents", GAUGE, "master/slaves_disconnected"),
    # Frameworks
    _key("mesos_master_frameworks_active", "Number of active frameworks", GAUGE, "master/frameworks_active"),
    _key("mesos_master_frameworks_inactive", "Number of inactive frameworks", GAUGE, "master/frameworks_inactive"),
    _key("mesos_master_frameworks_connected", "Number of connected frameworks", GAUGE, "master/frameworks_connected"),
    _key("mesos_master_frameworks_disconnected", "Number of disconnected frameworks", GAUGE, "master/frameworks_disconnected"),
    # Tasks
    _key("mesos_master_tasks_staging", "Number of staging tasks", GAUGE, "master/tasks_staging"),
    _key("mesos_master_tasks_starting", "Number of starting tasks", GAUGE, "master/tasks_starting"),
    _key("mesos_master_tasks_running", "Number of running tasks", GAUGE, "master/tasks_running"),
    _key("mesos_master_tasks_finished_total", "Total number of finished tasks", COUNTER, "master/tasks_finished"),
    _key("mesos_master_tasks_failed_total", "Total number of failed tasks", COUNTER, "master/tasks_failed"),
    _key("mesos_master_tasks_killed_total", "Total number of killed tasks", COUNTER, "master/tasks_killed"),
    _key("mesos_master_tasks_lost_total", "Total number of lost tasks", COUNTER, "master/tasks_lost"),
)

SLAVE_SNAPSHOT_METRICS: Tuple[MetricSpec, ...] = (
    _key("mesos_slave_uptime_seconds", "Number of seconds the agent process is running", GAUGE, "slave/uptime_secs"),
    _key("mesos_slave_registered", "1 if the agent is registered with a master, 0 otherwise", GAUGE, "slave/registered"),
    # Resources
    _key("mesos_slave_cpus", "Number of CPUs offered by this agent", GAUGE, "slave/cpus_total"),
    _key("mesos_slave_cpus_used", "Number of allocated CPUs", GAUGE, "slave/cpus_used"),
    _key("mesos_slave_mem_bytes", "Memory offered by this agent in bytes", GAUGE, "slave/mem_total", MEGABYTES),
    _key("mesos_slave_mem_used_bytes", "Allocated memory in bytes", GAUGE, "slave/mem_used", MEGABYTES),
    _key("mesos_slave_disk_bytes", "Disk offered by this agent in bytes", GAUGE, "slave/disk_total", MEGABYTES),
    _key("mesos_slave_disk_used_bytes", "Allocated disk in bytes", GAUGE, "slave/disk_used", MEGABYTES),
    # Executors and tasks
    _key("mesos_slave_executors_running", "Number of running executors", GAUGE, "slave/executors_running"),
    _key("mesos_slave_tasks_staging", "Number of staging tasks", GAUGE, "slave/tasks_staging"),
    _key("mesos_slave_tasks_starting", "Number of starting tasks", GAUGE, "slave/tasks_starting"),
    _key("mesos_slave_tasks_running", "Number of running tasks", GAUGE, "slave/tasks_running"),
    _key("mesos_slave_tasks_finished_total", "Total number of finished tasks", COUNTER, "slave/tasks_finished"),
    _key("mesos_slave_tasks_failed_total", "Total number of failed tasks", COUNTER, "slave/tasks_failed"),
    _key("mesos_slave_tasks_killed_total", "Total number of killed tasks", COUNTER, "slave/tasks_killed"),
    _key("mesos_slave_tasks_lost_total", "Total number of lost tasks", COUNTER, "slave/tasks_lost"),
)


class SnapshotCollector(JSONCollector):
    """One unlabeled record per scrape, keys missing from the snapshot read as zero."""

    endpoint = "/metrics/snapshot"
    shape = Dict[str, float]

    def records(self, payload: Dict[str, float]) -> Iterable[Any]:
        return [payload]

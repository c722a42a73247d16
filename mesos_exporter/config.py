import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import yaml

from mesos_exporter.trust import Credentials

CONFIG_PATH = "/etc/prometheus/mesos.yml"
DEFAULT_TIMEOUT = 5.0
DEFAULT_LISTEN = "0.0.0.0:9110"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ExporterConfig:
    master_url: str = ""
    slave_url: str = ""
    timeout: float = DEFAULT_TIMEOUT
    trusted_certs: Tuple[str, ...] = ()
    trusted_redirects: Tuple[str, ...] = ()
    listen_addr: str = "0.0.0.0"
    listen_port: int = 9110
    credentials: Optional[Credentials] = None

    @property
    def mode(self) -> str:
        if self.master_url and self.slave_url:
            raise ConfigError("Only master or slave can be given at a time")
        if self.master_url:
            return "master"
        if self.slave_url:
            return "slave"
        raise ConfigError("Either master or slave is required")

    @property
    def target_url(self) -> str:
        return self.master_url if self.mode == "master" else self.slave_url

    def override(self, **changes: Any) -> "ExporterConfig":
        # None means "not given on the command line"
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _split_list(value: Any) -> Tuple[str, ...]:
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(v).strip() for v in value if str(v).strip())


def parse_timeout(value: Any) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid timeout: {value!r}")
    if timeout <= 0:
        raise ConfigError(f"Timeout must be positive, got {value!r}")
    return timeout


def parse_listen(value: str) -> Tuple[str, int]:
    # ":9110" listens on all interfaces
    host, sep, port = str(value).rpartition(":")
    if not sep:
        raise ConfigError(f"Invalid listen address (expected host:port): {value!r}")
    try:
        return host or "0.0.0.0", int(port)
    except ValueError:
        raise ConfigError(f"Invalid listen port in {value!r}")


def _load_file(path: str, required: bool) -> Dict[str, Any]:
    if not os.path.exists(path):
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return cfg


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> ExporterConfig:
    """Merge the YAML file and MESOS_EXPORTER_* environment variables.

    Environment values win over the file. An explicitly requested file
    (argument or MESOS_EXPORTER_CONFIG) must exist; the default path is
    skipped when missing.
    """
    env = os.environ if environ is None else environ
    env_path = env.get("MESOS_EXPORTER_CONFIG")
    required = bool(path or env_path)
    path = path or env_path or CONFIG_PATH
    cfg = _load_file(path, required)

    def pick(key: str, env_name: str, default: Any = None) -> Any:
        if env.get(env_name):
            return env[env_name]
        value = cfg.get(key)
        return default if value is None else value

    auth = cfg.get("auth") or {}
    host, port = parse_listen(pick("listen", "MESOS_EXPORTER_LISTEN", DEFAULT_LISTEN))

    return ExporterConfig(
        master_url=str(pick("master", "MESOS_EXPORTER_MASTER", "")),
        slave_url=str(pick("slave", "MESOS_EXPORTER_SLAVE", "")),
        timeout=parse_timeout(pick("timeout", "MESOS_EXPORTER_TIMEOUT", DEFAULT_TIMEOUT)),
        trusted_certs=_split_list(pick("trusted_certs", "MESOS_EXPORTER_TRUSTED_CERTS")),
        trusted_redirects=_split_list(pick("trusted_redirects", "MESOS_EXPORTER_TRUSTED_REDIRECTS")),
        listen_addr=host,
        listen_port=port,
        credentials=Credentials.from_pair(
            env.get("MESOS_EXPORTER_USERNAME") or auth.get("username"),
            env.get("MESOS_EXPORTER_PASSWORD") or auth.get("password"),
        ),
    )


def split_list(value: Optional[str]) -> Optional[Sequence[str]]:
    return None if value is None else _split_list(value)

"""Generic describe/collect machinery turning decoded JSON records into metrics.

A collector is a ``RecordDecoder`` bound to one endpoint plus a table of
``MetricSpec`` rows. ``describe()`` advertises the table without touching the
network; ``collect()`` performs one fetch, decodes it, and emits one sample
per (record, spec) pair. A failed fetch or decode contributes nothing for
that scrape.
"""
import enum
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from prometheus_client import Counter
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from pydantic import TypeAdapter, ValidationError

from mesos_exporter.http_client import FetchError, SecureFetcher

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """Response body is not JSON, or does not fit the expected record shape."""


class MetricKind(str, enum.Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricSpec:
    name: str
    help: str
    labels: Tuple[str, ...]
    kind: MetricKind
    extract: Callable[[Any], float] = field(compare=False, repr=False)

    @property
    def identity(self) -> Tuple[str, Tuple[str, ...]]:
        return self.name, self.labels

    def family(self) -> Metric:
        if self.kind is MetricKind.COUNTER:
            return CounterMetricFamily(self.name, self.help, labels=list(self.labels))
        return GaugeMetricFamily(self.name, self.help, labels=list(self.labels))


class Sample(NamedTuple):
    spec: MetricSpec
    value: float
    label_values: Tuple[str, ...]


@lru_cache(maxsize=None)
def _adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


class RecordDecoder:
    """Fetches endpoints below ``base_url`` and validates them into typed records."""

    def __init__(self, fetcher: SecureFetcher, base_url: str):
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def fetch_and_decode(self, path: str, shape: Any) -> Any:
        url = self.url_for(path)
        resp = self.fetcher.fetch(url)
        if not 200 <= resp.status_code < 300:
            raise FetchError(f"GET {url} failed: {resp.status_code}")
        try:
            return _adapter(shape).validate_json(resp.content)
        except ValidationError as e:
            raise DecodeError(f"Decoding {url} failed: {e}") from e


class JSONCollector:
    """Base for collectors over one JSON endpoint.

    Subclasses set ``endpoint`` and ``shape`` and may override ``records``
    and ``label_values``. Registered with a prometheus_client registry it
    acts as a custom collector.
    """

    endpoint: str = ""
    shape: Any = Any

    def __init__(
        self,
        decoder: RecordDecoder,
        metrics: Sequence[MetricSpec],
        errors: Optional[Counter] = None,
    ):
        self.decoder = decoder
        self.metrics: Tuple[MetricSpec, ...] = tuple(metrics)
        self.errors = errors

    def records(self, payload: Any) -> Iterable[Any]:
        return payload

    def label_values(self, record: Any) -> Tuple[str, ...]:
        return ()

    def describe(self) -> Iterable[Metric]:
        for spec in self.metrics:
            yield spec.family()

    def scrape(self) -> List[Sample]:
        try:
            payload = self.decoder.fetch_and_decode(self.endpoint, self.shape)
        except (FetchError, DecodeError) as e:
            logger.error("Scrape of %s failed: %s", self.decoder.url_for(self.endpoint), e)
            if self.errors is not None:
                self.errors.inc()
            return []

        samples: List[Sample] = []
        for record in self.records(payload):
            values = self.label_values(record)
            for spec in self.metrics:
                samples.append(Sample(spec, float(spec.extract(record)), values))
        logger.debug("%s: %d samples from %s", type(self).__name__, len(samples), self.endpoint)
        return samples

    def collect(self) -> Iterable[Metric]:
        families: Dict[str, Metric] = {}
        for sample in self.scrape():
            family = families.get(sample.spec.name)
            if family is None:
                family = families[sample.spec.name] = sample.spec.family()
            family.add_metric(list(sample.label_values), sample.value)
        return list(families.values())

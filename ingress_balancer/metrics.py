import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Gauge

ACTIVE_RE = re.compile(r"^Active connections:\s*(\d+)\s*$")
COUNTERS_RE = re.compile(r"^\s*(\d+)\s+(\d+)\s+(\d+)\s*$")
STATES_RE = re.compile(r"^Reading:\s*(\d+)\s+Writing:\s*(\d+)\s+Waiting:\s*(\d+)\s*$")

GAUGES = {
    "connections": "The number of active connections to nginx",
    "reading_connections": "The number of connections where nginx is reading the request header",
    "writing_connections": "The number of connections where nginx is writing the response back to the client",
    "waiting_connections": "The number of idle client connections waiting for a request",
    "accepts": "The total number of accepted client connections",
    "handled": "The total number of handled client connections",
    "requests": "The total number of client requests",
    "frontends_attached": "The total number of frontends attached",
}


class StatusParseError(ValueError):
    pass


@dataclass(frozen=True)
class MetricsSnapshot:
    active_connections: int = 0
    accepts: int = 0
    handled: int = 0
    requests: int = 0
    reading: int = 0
    writing: int = 0
    waiting: int = 0
    healthy: bool = True

    def gauges(self) -> Dict[str, float]:
        return {
            "connections": self.active_connections,
            "reading_connections": self.reading,
            "writing_connections": self.writing,
            "waiting_connections": self.waiting,
            "accepts": self.accepts,
            "handled": self.handled,
            "requests": self.requests,
        }


def parse_status(body: str) -> MetricsSnapshot:
    """Разбор страницы stub_status.

    Ожидаемый формат::

        Active connections: 9
        server accepts handled requests
         13287 13286 66627
        Reading: 2 Writing: 1 Waiting: 8
    """
    lines = body.strip("\r\n").splitlines()
    if len(lines) < 4:
        raise StatusParseError(f"expected 4 lines in status page, got {len(lines)}: {body!r}")

    active = ACTIVE_RE.match(lines[0])
    counters = COUNTERS_RE.match(lines[2])
    states = STATES_RE.match(lines[3])
    if not active:
        raise StatusParseError(f"unable to parse active connections from {lines[0]!r}")
    if not counters:
        raise StatusParseError(f"unable to parse accepts/handled/requests from {lines[2]!r}")
    if not states:
        raise StatusParseError(f"unable to parse reading/writing/waiting from {lines[3]!r}")

    accepts, handled, requests = (int(v) for v in counters.groups())
    reading, writing, waiting = (int(v) for v in states.groups())
    return MetricsSnapshot(
        active_connections=int(active.group(1)),
        accepts=accepts,
        handled=handled,
        requests=requests,
        reading=reading,
        writing=writing,
        waiting=waiting,
    )


class MetricsSink(ABC):
    """Куда экспортировать значения метрик."""

    @abstractmethod
    def set_gauge(self, name: str, value: float):
        pass

    def record_snapshot(self, snapshot: MetricsSnapshot):
        for name, value in snapshot.gauges().items():
            self.set_gauge(name, value)


class NullMetricsSink(MetricsSink):
    def set_gauge(self, name: str, value: float):
        pass


class PrometheusMetricsSink(MetricsSink):
    """Gauges on a registry owned by this sink, never the process-wide default."""

    def __init__(self, registry: Optional[CollectorRegistry] = None,
                 namespace: str = "ingress", subsystem: str = "nginx"):
        self.registry = registry or CollectorRegistry()
        self.prefix = f"{namespace}_{subsystem}"
        self.gauges: Dict[str, Gauge] = {
            name: Gauge(name, description, namespace=namespace, subsystem=subsystem, registry=self.registry)
            for name, description in GAUGES.items()
        }

    def set_gauge(self, name: str, value: float):
        if name not in self.gauges:
            raise KeyError(f"unknown gauge: {name}")
        self.gauges[name].set(value)

    def get_gauge(self, name: str) -> Optional[float]:
        return self.registry.get_sample_value(f"{self.prefix}_{name}")

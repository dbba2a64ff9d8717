from typing import Iterable, Optional

from .base import Logger
from .config import StaticConfig
from .entries import RoutingEntry
from .errors import ProcessStateError, ProxyUnhealthyError
from .metrics import MetricsSink, MetricsSnapshot, NullMetricsSink
from .monitor import HealthMonitor
from .process import ProcessState, ProcessSupervisor, Signaller
from .renderer import ConfigRenderer
from .store import ConfigStore
from .validator import ConfigValidator


class LoadBalancerController:
    """Жизненный цикл nginx: start, update, stop, health.

    Вызовы ожидаются из одного потока; параллельные update() здесь не
    согласуются.
    """

    def __init__(self,
                 conf: StaticConfig,
                 signaller: Optional[Signaller] = None,
                 metrics_sink: Optional[MetricsSink] = None):
        self.conf = conf
        self.logger = Logger.get_logger("nginx")
        self.metrics_sink = metrics_sink or NullMetricsSink()

        self.renderer = ConfigRenderer(conf)
        self.store = ConfigStore(conf.config_path)
        self.validator = ConfigValidator(conf.binary_location)
        self.supervisor = ProcessSupervisor(
            conf.binary_location,
            conf.config_path,
            signaller=signaller,
            start_delay=conf.start_delay,
            shutdown_timeout=conf.shutdown_timeout,
        )
        self.monitor = HealthMonitor(
            conf.health_port,
            metrics_sink=self.metrics_sink,
            interval=conf.metrics_interval,
            status_path=conf.status_path,
        )

    def start(self):
        if self.supervisor.state is not ProcessState.NOT_STARTED:
            raise ProcessStateError("nginx proxy has already been started")

        self.validator.version()
        self._initialise_nginx_conf()
        self.supervisor.start()
        self.monitor.start(self.supervisor.done)

    def _initialise_nginx_conf(self):
        # Bootstrap with no entries; the first update() fills in the routes.
        candidate = self.renderer.render([])
        self.store.persist(candidate)

    def update(self, entries: Iterable[RoutingEntry]) -> bool:
        """Применяет записи маршрутизации; возвращает True, если nginx перезагружен."""
        if self.supervisor.state is ProcessState.NOT_STARTED:
            raise ProcessStateError("nginx proxy has not been started")

        entries = list(entries)
        self.logger.debug(f"Updating loadbalancer with {len(entries)} entries")
        candidate = self.renderer.render(entries)
        result = self.store.persist(candidate)
        if not result.changed:
            return False

        self.validator.check(self.conf.config_path)
        self.supervisor.reload()
        self.logger.info("Nginx updated")
        return True

    def stop(self):
        try:
            self.supervisor.stop()
        finally:
            if self.supervisor.done.is_set():
                self.monitor.stop()

    def health(self):
        self.supervisor.health()
        self.monitor.health()

    def is_healthy(self) -> bool:
        try:
            self.health()
        except ProxyUnhealthyError:
            return False
        return True

    def metrics(self) -> MetricsSnapshot:
        return self.monitor.snapshot

    def __str__(self) -> str:
        return "nginx proxy"

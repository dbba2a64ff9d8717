from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .base import Logger
from .controller import LoadBalancerController
from .entries import RoutingEntry
from .errors import ControllerError
from .metrics import MetricsSink, NullMetricsSink


class Frontend(ABC):
    """Внешний балансировщик, к которому подключается этот узел."""

    @abstractmethod
    def attach(self) -> int:
        """Attach this instance; returns the number of frontends attached to."""

    @abstractmethod
    def detach(self):
        pass


class NullFrontend(Frontend):
    """Для развёртываний без внешнего балансировщика."""

    def attach(self) -> int:
        return 0

    def detach(self):
        pass


class IngressUpdater:
    """Связывает внешний frontend и локальный nginx в один жизненный цикл."""

    def __init__(self,
                 frontend: Frontend,
                 proxy: LoadBalancerController,
                 metrics_sink: Optional[MetricsSink] = None):
        self.frontend = frontend
        self.proxy = proxy
        self.metrics_sink = metrics_sink or NullMetricsSink()
        self.logger = Logger.get_logger("ingress_updater")

    def start(self):
        try:
            frontends = self.frontend.attach()
        except Exception as e:
            raise ControllerError(f"unable to attach to front end: {e}") from e

        self.metrics_sink.set_gauge("frontends_attached", frontends)

        try:
            self.proxy.start()
        except ControllerError as e:
            raise ControllerError(f"unable to start proxy: {e}") from e

    def stop(self):
        try:
            self.frontend.detach()
        except Exception as e:
            self.logger.warning(f"Error while detaching front end: {e}")

        try:
            self.proxy.stop()
        except ControllerError as e:
            self.logger.warning(f"Error while stopping proxy: {e}")

    def health(self):
        self.proxy.health()

    def update(self, entries: Iterable[RoutingEntry]) -> bool:
        updated = self.proxy.update(entries)
        if updated:
            self.logger.info("Load balancer updated")
        else:
            self.logger.info("No changes")
        return updated

    def __str__(self) -> str:
        return f"ingress updater ({self.proxy})"

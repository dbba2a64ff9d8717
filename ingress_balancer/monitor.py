import dataclasses
import threading
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import Logger, SafeValue
from .errors import ProxyUnhealthyError
from .metrics import MetricsSink, MetricsSnapshot, NullMetricsSink, StatusParseError, parse_status


class HealthMonitor:
    """Периодически читает страницу статуса nginx и обновляет метрики.

    Неудачный опрос только выставляет флаг нездоровья и не останавливает цикл.
    """

    def __init__(self,
                 health_port: int,
                 metrics_sink: Optional[MetricsSink] = None,
                 interval: float = 10.0,
                 status_path: str = "/status",
                 host: str = "localhost",
                 timeout: float = 2.0):
        self.url = f"http://{host}:{health_port}{status_path}"
        self.metrics_sink = metrics_sink or NullMetricsSink()
        self.interval = interval
        self.timeout = timeout
        self.logger = Logger.get_logger("health_monitor")

        self.session = self._create_session()
        self.stop_event = threading.Event()
        self.monitor_thread: Optional[threading.Thread] = None
        self._unhealthy = SafeValue(False)
        self._snapshot = SafeValue(MetricsSnapshot())

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(max_retries=Retry(total=0), pool_connections=1, pool_maxsize=1)
        session.mount("http://", adapter)
        return session

    @property
    def snapshot(self) -> MetricsSnapshot:
        return self._snapshot.get()

    @property
    def healthy(self) -> bool:
        return not self._unhealthy.get()

    def start(self, done: Optional[threading.Event] = None):
        if self.monitor_thread and self.monitor_thread.is_alive():
            return
        self.stop_event.clear()
        self.monitor_thread = threading.Thread(
            target=self._monitor_loop, args=(done,), name="NginxMetrics", daemon=True
        )
        self.monitor_thread.start()
        self.logger.info("Nginx metrics monitoring started")

    def stop(self, timeout: float = 5):
        self.stop_event.set()
        if self.monitor_thread:
            self.monitor_thread.join(timeout=timeout)
        self.logger.info("Nginx metrics monitoring stopped")

    def _monitor_loop(self, done: Optional[threading.Event]):
        self.update_metrics()
        while not self.stop_event.wait(self.interval):
            if done is not None and done.is_set():
                break
            self.update_metrics()

    def update_metrics(self) -> bool:
        try:
            snapshot = self.scrape()
        except (requests.RequestException, StatusParseError) as e:
            self.logger.warning(f"Unable to update nginx metrics: {e}")
            self._unhealthy.set(True)
            self._snapshot.set(dataclasses.replace(self.snapshot, healthy=False))
            return False

        self.metrics_sink.record_snapshot(snapshot)
        self._snapshot.set(snapshot)
        self._unhealthy.set(False)
        return True

    def scrape(self) -> MetricsSnapshot:
        response = self.session.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        return parse_status(response.text)

    def health(self):
        if self._unhealthy.get():
            raise ProxyUnhealthyError("nginx metrics are failing to update")

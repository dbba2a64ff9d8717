import enum
import signal
import subprocess
import threading
from abc import ABC, abstractmethod
from typing import IO, Optional

from .base import Logger, SafeValue
from .errors import ProcessExitError, ProcessStateError, ProxyUnhealthyError, SignalError, SpawnError


class ProcessState(enum.Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    EXITED = "exited"


class Signaller(ABC):
    """Отправка управляющих сигналов процессу nginx."""

    @abstractmethod
    def shutdown(self, process: subprocess.Popen):
        """Graceful shutdown."""

    @abstractmethod
    def reload(self, process: subprocess.Popen):
        """Reload configuration."""


class OsSignaller(Signaller):
    def __init__(self):
        self.logger = Logger.get_logger("nginx")

    def shutdown(self, process: subprocess.Popen):
        self.logger.debug(f"Sending SIGQUIT to {process.pid}")
        process.send_signal(signal.SIGQUIT)

    def reload(self, process: subprocess.Popen):
        self.logger.debug(f"Sending SIGHUP to {process.pid}")
        process.send_signal(signal.SIGHUP)


class ProcessSupervisor:
    """Владеет одним процессом nginx: запуск, наблюдение за выходом, остановка.

    Экземпляр одноразовый: после выхода процесса для нового запуска nginx
    нужен новый супервизор.
    """

    def __init__(self,
                 binary_location: str,
                 config_path: str,
                 signaller: Optional[Signaller] = None,
                 start_delay: float = 0.1,
                 shutdown_timeout: Optional[float] = None):
        self.binary_location = binary_location
        self.config_path = config_path
        self.signaller = signaller or OsSignaller()
        self.start_delay = start_delay
        self.shutdown_timeout = shutdown_timeout
        self.logger = Logger.get_logger("nginx")

        self.process: Optional[subprocess.Popen] = None
        self.done = threading.Event()
        self._state = SafeValue(ProcessState.NOT_STARTED)
        self._running = SafeValue(False)
        self._last_error: SafeValue[Optional[ProcessExitError]] = SafeValue(None)
        self._watcher_thread: Optional[threading.Thread] = None
        self._pump_thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ProcessState:
        return self._state.get()

    @property
    def running(self) -> bool:
        return self._running.get()

    @property
    def last_error(self) -> Optional[ProcessExitError]:
        return self._last_error.get()

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    def start(self):
        if self.state is not ProcessState.NOT_STARTED:
            raise ProcessStateError(f"nginx has already been started (state: {self.state.value})")

        cmd = [self.binary_location, "-c", self.config_path]
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise SpawnError(f"unable to start nginx: {e}") from e

        self._running.set(True)
        self._state.set(ProcessState.RUNNING)

        self._pump_thread = threading.Thread(
            target=self._pump_output, args=(self.process.stdout,), name="NginxOutput", daemon=True
        )
        self._pump_thread.start()
        self._watcher_thread = threading.Thread(target=self._wait_for_exit, name="NginxWatcher", daemon=True)
        self._watcher_thread.start()

        if self.done.wait(self.start_delay):
            reason = self.last_error or "exited with status 0"
            raise SpawnError(f"nginx died shortly after starting: {reason}")

        self.logger.debug(f"Nginx pid {self.process.pid}")

    def _pump_output(self, stream: IO[bytes]):
        with stream:
            for raw in iter(stream.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip()
                if line:
                    self.logger.info(line)

    def _wait_for_exit(self):
        returncode = self.process.wait()
        if returncode != 0:
            error: Optional[ProcessExitError] = ProcessExitError(returncode)
            self.logger.error(f"Nginx has exited with an error: {error}")
        else:
            error = None
            self.logger.info("Nginx has shutdown successfully")
        self._last_error.set(error)
        self._running.set(False)
        self._state.set(ProcessState.EXITED)
        self.done.set()

    def reload(self):
        if self.process is None:
            raise ProcessStateError("nginx has not been started")
        if self.done.is_set():
            raise SignalError("unable to signal nginx to reload: nginx is not running")
        try:
            self.signaller.reload(self.process)
        except OSError as e:
            raise SignalError(f"unable to signal nginx to reload: {e}") from e

    def stop(self):
        if self.process is None:
            raise ProcessStateError("nginx has not been started")

        if not self.done.is_set():
            self.logger.info("Shutting down nginx process")
            try:
                self.signaller.shutdown(self.process)
            except OSError as e:
                raise SignalError(f"error shutting down nginx: {e}") from e

            if not self.done.wait(self.shutdown_timeout):
                self.logger.warning(
                    f"Nginx did not exit within {self.shutdown_timeout}s of the shutdown signal, killing it"
                )
                self.process.kill()
                self.done.wait()

        error = self.last_error
        if error is not None:
            raise error

    def health(self):
        if not self.running:
            raise ProxyUnhealthyError("nginx is not running")

    def join(self, timeout: Optional[float] = None):
        """Ожидание фоновых потоков после остановки."""
        for thread in (self._watcher_thread, self._pump_thread):
            if thread:
                thread.join(timeout=timeout)

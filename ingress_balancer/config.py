import json
import os
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .base import Logger, SettingsValidator
from .entries import RoutingEntry


@dataclass(frozen=True)
class StaticConfig:
    """Неизменяемые настройки одного экземпляра nginx."""

    binary_location: str
    working_dir: str
    worker_processes: int = 1
    worker_connections: int = 1024
    keepalive_seconds: int = 65
    backend_keepalives: int = 512
    backend_keepalive_seconds: int = 60
    health_port: int = 8081
    ingress_port: int = 8080
    trusted_frontends: Tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "warn"
    config_filename: str = "nginx.conf"
    template_filename: str = "nginx.tmpl"
    status_path: str = "/status"
    start_delay: float = 0.1
    metrics_interval: float = 10.0
    shutdown_timeout: Optional[float] = None

    def __post_init__(self):
        working_dir = self.working_dir.rstrip("/") or "/"
        object.__setattr__(self, "working_dir", working_dir)
        object.__setattr__(self, "trusted_frontends", tuple(self.trusted_frontends or ()))
        if not self.log_level:
            object.__setattr__(self, "log_level", "warn")

    @property
    def config_path(self) -> str:
        return os.path.join(self.working_dir, self.config_filename)

    @property
    def template_path(self) -> str:
        return os.path.join(self.working_dir, self.template_filename)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaticConfig":
        """Построение из секции "nginx" файла настроек; неизвестные ключи игнорируются."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        if "trusted_frontends" in kwargs:
            kwargs["trusted_frontends"] = tuple(kwargs["trusted_frontends"])
        return cls(**kwargs)


def entries_from_settings(settings: Dict[str, Any]) -> List[RoutingEntry]:
    return [RoutingEntry.from_dict(e) for e in settings.get("entries", [])]


class ConfigHandler(FileSystemEventHandler):
    """Перечитывает файл настроек после серии событий записи."""

    def __init__(self, config_file: str, callback: Callable[[Dict[str, Any]], None], debounce: float = 0.1):
        self.config_file = Path(config_file).resolve()
        self.callback = callback
        self.debounce = debounce
        self.timer: Optional[threading.Timer] = None
        self.lock = threading.Lock()
        self.logger = Logger.get_logger("config_manager")

    def on_modified(self, event):
        if not event.is_directory and self._is_config(event.src_path):
            self._schedule_reload()

    def on_moved(self, event):
        # Editors that save through a rename
        if not event.is_directory and self._is_config(event.dest_path):
            self._schedule_reload()

    def _is_config(self, path) -> bool:
        return Path(os.fsdecode(path)).resolve() == self.config_file

    def _schedule_reload(self):
        with self.lock:
            if self.timer is not None:
                self.timer.cancel()
            self.timer = threading.Timer(self.debounce, self._reload_config)
            self.timer.daemon = True
            self.timer.start()

    def cancel(self):
        with self.lock:
            if self.timer is not None:
                self.timer.cancel()
                self.timer = None

    def _reload_config(self):
        try:
            new_config = load_config(str(self.config_file))
        except (OSError, ValueError) as e:
            self.logger.error(f"Error reloading settings: {e}")
            return
        if SettingsValidator.validate_settings(new_config):
            self.callback(new_config)
        else:
            self.logger.warning(f"Invalid settings in {self.config_file}, ignoring changes")


class ConfigManager:
    def __init__(self, config_file: str = "settings.json"):
        self.logger = Logger.get_logger("config_manager")
        self.config_file = config_file
        self.config = load_config(config_file)
        self.observer = None
        self.handler: Optional[ConfigHandler] = None
        self.callbacks: List[Callable[[Dict[str, Any]], None]] = []

    def add_change_callback(self, callback: Callable[[Dict[str, Any]], None]):
        """Добавление callback для изменения настроек."""
        self.callbacks.append(callback)

    def start_monitoring(self):
        """Запуск мониторинга изменений файла настроек."""
        if self.observer is not None:
            return
        watch_dir = Path(self.config_file).resolve().parent
        self.observer = Observer()
        self.handler = ConfigHandler(self.config_file, self._on_config_changed)
        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        self.logger.info(f"Started monitoring settings file: {self.config_file}")

    def stop_monitoring(self):
        """Остановка мониторинга изменений файла настроек."""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
            self.handler.cancel()
            self.handler = None
            self.logger.info("Stopped monitoring settings file")

    def _on_config_changed(self, new_config: Dict[str, Any]):
        """Обработка изменения настроек."""
        if new_config.get("nginx") != self.config.get("nginx"):
            self.logger.warning("Changes to the nginx section require a restart and are ignored")
        self.config = new_config
        for callback in self.callbacks:
            try:
                callback(new_config)
            except Exception as e:
                self.logger.error(f"Error in settings change callback: {e}")

    def get_config(self) -> Dict[str, Any]:
        """Получение копии текущих настроек."""
        return self.config.copy()

    def get_static_config(self) -> StaticConfig:
        return StaticConfig.from_dict(self.config["nginx"])

    def get_entries(self) -> List[RoutingEntry]:
        return entries_from_settings(self.config)

    def reload_config(self):
        """Ручная перезагрузка настроек."""
        try:
            new_config = load_config(self.config_file)
        except (OSError, ValueError) as e:
            self.logger.error(f"Error reloading settings manually: {e}")
            return
        self._on_config_changed(new_config)


def load_config(config_file: str = "settings.json") -> Dict[str, Any]:
    """Загрузка настроек из файла."""
    with open(config_file, "r", encoding='utf-8') as f:
        return json.load(f)

"""
Базовые утилиты и общие компоненты для контроллера nginx.
"""
import logging
import threading
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class Logger:
    """Статический логгер для всех компонентов системы."""

    _loggers: Dict[str, logging.Logger] = {}
    _level = logging.INFO

    @classmethod
    def get_logger(cls, name: str = "ingress_balancer") -> logging.Logger:
        """Получение настроенного логгера."""
        if name not in cls._loggers:
            cls._loggers[name] = cls._setup_logger(name)
        return cls._loggers[name]

    @classmethod
    def _setup_logger(cls, name: str) -> logging.Logger:
        """Настройка логгера."""
        logger = logging.getLogger(name)
        logger.setLevel(cls._level)

        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        return logger

    @classmethod
    def set_level(cls, level: int):
        """Изменение уровня для всех уже созданных логгеров."""
        cls._level = level
        for logger in cls._loggers.values():
            logger.setLevel(level)

    @classmethod
    def level_from_name(cls, name: Any, default: int = logging.INFO) -> int:
        """Числовой уровень по имени ("INFO", "debug"); неизвестное имя даёт default."""
        if isinstance(name, str):
            level = logging.getLevelName(name.upper())
            if isinstance(level, int):
                return level
        cls.get_logger().warning(f"Unknown log level {name!r}, using {logging.getLevelName(default)}")
        return default


class SafeValue(Generic[T]):
    """Ячейка с одним писателем и многими читателями.

    У каждой ячейки свой замок, независимые флаги не конкурируют.
    """

    def __init__(self, value: T):
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T):
        with self._lock:
            self._value = value


class SettingsValidator:
    """Валидатор файла настроек демона."""

    _logger = Logger.get_logger("config_manager")

    @classmethod
    def validate_settings(cls, settings: Dict[str, Any]) -> bool:
        """Полная валидация настроек."""
        nginx = settings.get("nginx")
        if not isinstance(nginx, dict):
            cls._logger.error("Missing required section in settings: nginx")
            return False

        for field in ("binary_location", "working_dir"):
            if not nginx.get(field):
                cls._logger.error(f"Missing required field in nginx settings: {field}")
                return False

        entries = settings.get("entries", [])
        if not isinstance(entries, list):
            cls._logger.error("Entries must be a list")
            return False

        for i, entry in enumerate(entries):
            if not cls.validate_entry(entry):
                cls._logger.error(f"Invalid ingress entry at index {i}")
                return False

        return True

    @staticmethod
    def validate_entry(entry: Any) -> bool:
        """Валидация одной записи маршрутизации."""
        if not isinstance(entry, dict):
            return False
        required_fields = ["name", "host", "service_address", "service_port"]
        if not all(field in entry for field in required_fields):
            return False
        try:
            int(entry["service_port"])
        except (TypeError, ValueError):
            return False
        allow = entry.get("allow")
        return allow is None or isinstance(allow, list)

    @staticmethod
    def get_setting(settings: Dict[str, Any], key: str, default: Optional[Any]) -> Any:
        """Безопасное получение значения из настроек."""
        value = settings.get(key)
        return default if value is None else value

from .controller import LoadBalancerController
from .config import ConfigManager, StaticConfig
from .entries import RoutingEntry
from .errors import (ControllerError, PersistError, ProcessExitError, ProcessStateError, ProxyUnhealthyError,
                     RenderError, SignalError, SpawnError, ValidationError)
from .metrics import MetricsSink, MetricsSnapshot, NullMetricsSink, PrometheusMetricsSink
from .process import OsSignaller, ProcessSupervisor, Signaller
from .renderer import ConfigRenderer, install_default_template
from .updater import Frontend, IngressUpdater, NullFrontend

__all__ = [
    "ConfigManager",
    "ConfigRenderer",
    "ControllerError",
    "Frontend",
    "IngressUpdater",
    "LoadBalancerController",
    "MetricsSink",
    "MetricsSnapshot",
    "NullFrontend",
    "NullMetricsSink",
    "OsSignaller",
    "PersistError",
    "ProcessExitError",
    "ProcessStateError",
    "ProcessSupervisor",
    "PrometheusMetricsSink",
    "ProxyUnhealthyError",
    "RenderError",
    "RoutingEntry",
    "SignalError",
    "Signaller",
    "SpawnError",
    "StaticConfig",
    "ValidationError",
    "install_default_template",
]

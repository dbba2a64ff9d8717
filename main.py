import argparse
import sys
from typing import Any, Callable, Dict, List, Optional

from prometheus_client import start_http_server

from ingress_balancer.base import Logger
from ingress_balancer.config import ConfigManager, entries_from_settings
from ingress_balancer.controller import LoadBalancerController
from ingress_balancer.errors import ControllerError
from ingress_balancer.metrics import PrometheusMetricsSink
from ingress_balancer.renderer import install_default_template
from ingress_balancer.updater import IngressUpdater, NullFrontend

logger = Logger.get_logger("ingress_balancer")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ingress-balancer",
        description="Runs nginx and keeps its routing in sync with a JSON settings file.",
    )
    parser.add_argument("-s", "--settings", default="settings.json",
                        help="settings file with the nginx section and routing entries (default: %(default)s)")
    parser.add_argument("--log-level",
                        help="log level name; overrides log_level from the settings file")
    parser.add_argument("--metrics-port", type=int,
                        help="port for the Prometheus endpoint; overrides metrics_port from the settings file")
    parser.add_argument("--no-watch", action="store_true",
                        help="apply the entries once and do not follow changes to the settings file")
    return parser


def settings_listener(updater: IngressUpdater) -> Callable[[Dict[str, Any]], None]:
    """Callback для ConfigManager: новые записи уходят в nginx."""
    def apply(settings: Dict[str, Any]):
        try:
            updater.update(entries_from_settings(settings))
        except ControllerError as e:
            logger.error(f"Routing entries from the settings file were not applied: {e}")

    return apply


def wait_for_exit(controller: LoadBalancerController) -> bool:
    """Блокирует до выхода nginx; True, если выход был неожиданным."""
    try:
        while not controller.supervisor.done.wait(1):
            pass
    except KeyboardInterrupt:
        return False
    return True


def run(args: argparse.Namespace) -> int:
    try:
        config_manager = ConfigManager(args.settings)
    except FileNotFoundError:
        logger.error(f"Settings file not found: {args.settings}")
        return 1
    except ValueError as e:
        logger.error(f"Settings file {args.settings} is not valid JSON: {e}")
        return 1

    settings = config_manager.get_config()
    Logger.set_level(Logger.level_from_name(args.log_level or settings.get("log_level", "INFO")))

    conf = config_manager.get_static_config()
    install_default_template(conf.working_dir, conf.template_filename)

    metrics_sink = PrometheusMetricsSink()
    metrics_port = args.metrics_port or settings.get("metrics_port")
    if metrics_port:
        start_http_server(int(metrics_port), registry=metrics_sink.registry)
        logger.info(f"Serving metrics on port {metrics_port}")

    controller = LoadBalancerController(conf, metrics_sink=metrics_sink)
    updater = IngressUpdater(NullFrontend(), controller, metrics_sink=metrics_sink)

    try:
        updater.start()
        updater.update(config_manager.get_entries())
    except ControllerError as e:
        logger.error(f"Unable to start {updater}: {e}")
        updater.stop()
        return 1

    if not args.no_watch:
        config_manager.add_change_callback(settings_listener(updater))
        config_manager.start_monitoring()

    logger.info(f"Started with {len(config_manager.get_entries())} entries from {args.settings}")
    crashed = wait_for_exit(controller)
    config_manager.stop_monitoring()
    if crashed:
        logger.error("nginx exited unexpectedly")
        return 1

    logger.info("Shutting down")
    updater.stop()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    return run(build_parser().parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())

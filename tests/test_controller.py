import signal
import unittest

from ingress_balancer.errors import (ProcessStateError, ProxyUnhealthyError, SignalError, SpawnError,
                                     ValidationError)
from ingress_balancer.metrics import PrometheusMetricsSink
from ingress_balancer.process import ProcessState
from tests.base_test import BaseControllerTest, RecordingMetricsSink, entry


class TestLoadBalancerController(BaseControllerTest):
    """Интеграционные тесты контроллера с фейковым nginx"""

    def create_running_controller(self, mode="normal", **kwargs):
        self.status = self.start_status_server()
        controller = self.create_controller(mode=mode, health_port=self.status.port, **kwargs)
        self.start_controller(controller)
        return controller

    def test_start_writes_empty_config(self):
        controller = self.create_running_controller()
        config = self.read_config()
        self.assertNotIn("# Start entry", config)
        self.assertIn("listen 9090 default_server;", config)
        self.assertIn("return 404;", config)
        self.assertIn(f"listen {self.status.port} default_server reuseport;", config)
        self.assertIn("stub_status;", config)
        self.assertIs(controller.supervisor.state, ProcessState.RUNNING)
        controller.health()
        self.assertTrue(controller.is_healthy())

    def test_start_twice(self):
        controller = self.create_running_controller()
        with self.assertRaises(ProcessStateError):
            controller.start()

    def test_update_before_start(self):
        controller = self.create_controller()
        with self.assertRaises(ProcessStateError):
            controller.update([entry()])

    def test_start_fails_when_nginx_dies(self):
        controller = self.create_controller(mode="dies", start_delay=1.0)
        with self.assertRaises(SpawnError):
            controller.start()
        with self.assertRaises(ProxyUnhealthyError):
            controller.health()

    def test_update_writes_config_and_reloads(self):
        controller = self.create_running_controller()
        updated = controller.update([entry(name="svc-a", path="/foo", service_address="10.0.0.1",
                                           service_port=8080)])
        self.assertTrue(updated)
        config = self.read_config()
        self.assertIn("upstream upstream000 {", config)
        self.assertIn("server 10.0.0.1:8080;", config)
        self.assertIn("location /foo/ {", config)
        self.assertIn("proxy_pass http://upstream000/;", config)
        self.assertEqual(self.signaller.count("reload"), 1)
        self.assertTrue(self.wait_for(lambda: self.fakes.reload_count() == 1))

    def test_identical_update_does_not_reload(self):
        controller = self.create_running_controller()
        entries = [entry(name="b-second"), entry(name="a-first")]
        self.assertTrue(controller.update(entries))
        self.assertFalse(controller.update(list(reversed(entries))))
        self.assertEqual(self.signaller.count("reload"), 1)

    def test_empty_update_after_start_is_unchanged(self):
        controller = self.create_running_controller()
        self.assertFalse(controller.update([]))
        self.assertEqual(self.signaller.count("reload"), 0)

    def test_each_change_reloads(self):
        controller = self.create_running_controller()
        self.assertTrue(controller.update([entry(service_port=8080)]))
        self.assertTrue(controller.update([entry(service_port=8081)]))
        self.assertTrue(controller.update([]))
        self.assertEqual(self.signaller.count("reload"), 3)
        self.assertNotIn("# Start entry", self.read_config())

    def test_failed_validation_does_not_reload(self):
        controller = self.create_running_controller(mode="failing_check")
        with self.assertRaises(ValidationError) as ctx:
            controller.update([entry()])
        message = str(ctx.exception)
        self.assertIn("unknown directive", message)
        self.assertIn(" -t ", message)
        self.assertEqual(self.signaller.count("reload"), 0)
        self.assertEqual(self.fakes.reload_count(), 0)
        controller.health()

        # The rejected file stays on disk, so an identical retry is a no-op.
        self.assertIn("# Start entry", self.read_config())
        self.assertFalse(controller.update([entry()]))

    def test_update_after_crash_raises(self):
        controller = self.create_running_controller()
        controller.supervisor.process.send_signal(signal.SIGTERM)
        self.assertTrue(controller.supervisor.done.wait(5))
        with self.assertRaises(SignalError):
            controller.update([entry()])
        self.assertEqual(self.signaller.count("reload"), 0)
        self.assertEqual(self.fakes.reload_count(), 0)

    def test_stop(self):
        controller = self.create_running_controller()
        controller.stop()
        self.assertEqual(self.signaller.calls, ["shutdown"])
        self.assertIs(controller.supervisor.state, ProcessState.EXITED)
        with self.assertRaises(ProxyUnhealthyError) as ctx:
            controller.health()
        self.assertIn("not running", str(ctx.exception))
        self.assertFalse(controller.is_healthy())

    def test_metrics_stop_after_nginx_exits(self):
        controller = self.create_running_controller()
        self.assertTrue(self.wait_for(lambda: self.status.request_count() >= 2))
        controller.stop()
        self.assertFalse(controller.monitor.monitor_thread.is_alive())
        count = self.status.request_count()
        self.assertFalse(self.wait_for(lambda: self.status.request_count() > count, timeout=0.5))

    def test_gauges_are_updated(self):
        sink = RecordingMetricsSink()
        controller = self.create_running_controller(metrics_sink=sink)
        self.assertTrue(self.wait_for(lambda: sink.values.get("requests") == 66627))
        self.assertEqual(sink.values["connections"], 9)
        self.assertEqual(sink.values["reading_connections"], 2)
        self.assertEqual(sink.values["writing_connections"], 1)
        self.assertEqual(sink.values["waiting_connections"], 8)
        self.assertEqual(sink.values["accepts"], 13287)
        self.assertEqual(sink.values["handled"], 13286)
        self.assertEqual(controller.metrics().active_connections, 9)

    def test_prometheus_gauges(self):
        sink = PrometheusMetricsSink()
        self.create_running_controller(metrics_sink=sink)
        self.assertTrue(self.wait_for(lambda: sink.get_gauge("handled") == 13286))
        self.assertEqual(sink.get_gauge("connections"), 9)

    def test_status_failure_marks_unhealthy(self):
        controller = self.create_running_controller()
        self.assertTrue(self.wait_for(lambda: self.status.request_count() >= 1))
        self.status.set_response("oops", status_code=500)
        self.assertTrue(self.wait_for(lambda: not controller.is_healthy()))
        with self.assertRaises(ProxyUnhealthyError) as ctx:
            controller.health()
        self.assertIn("failing to update", str(ctx.exception))

        self.status.set_response("Active connections: 1\nserver accepts handled requests\n 1 1 1\n"
                                 "Reading: 0 Writing: 1 Waiting: 0\n")
        self.assertTrue(self.wait_for(controller.is_healthy))

    def test_str(self):
        self.assertEqual(str(self.create_controller()), "nginx proxy")


if __name__ == "__main__":
    unittest.main()

import json
import logging
import time
import unittest

from ingress_balancer.base import Logger, SettingsValidator
from ingress_balancer.config import ConfigManager, StaticConfig
from tests.base_test import BaseControllerTest, entry
from tests.fake_nginx import as_dicts


def settings(entries=(), **nginx):
    section = {"binary_location": "/usr/sbin/nginx", "working_dir": "/var/lib/ingress"}
    section.update(nginx)
    return {"nginx": section, "entries": as_dicts(entries)}


class TestStaticConfig(unittest.TestCase):
    def test_defaults(self):
        conf = StaticConfig(binary_location="nginx", working_dir="/tmp/work/")
        self.assertEqual(conf.working_dir, "/tmp/work")
        self.assertEqual(conf.config_path, "/tmp/work/nginx.conf")
        self.assertEqual(conf.template_path, "/tmp/work/nginx.tmpl")
        self.assertEqual(conf.log_level, "warn")
        self.assertEqual(conf.status_path, "/status")
        self.assertEqual(conf.trusted_frontends, ())
        self.assertIsNone(conf.shutdown_timeout)

    def test_empty_log_level_falls_back_to_warn(self):
        self.assertEqual(StaticConfig(binary_location="nginx", working_dir="/tmp", log_level="").log_level, "warn")

    def test_from_dict(self):
        conf = StaticConfig.from_dict({
            "binary_location": "/usr/sbin/nginx",
            "working_dir": "/var/lib/ingress/",
            "ingress_port": 9090,
            "trusted_frontends": ["10.50.185.0/24"],
            "log_level": None,
            "metrics_port": 9100,
        })
        self.assertEqual(conf.ingress_port, 9090)
        self.assertEqual(conf.working_dir, "/var/lib/ingress")
        self.assertEqual(conf.trusted_frontends, ("10.50.185.0/24",))
        self.assertEqual(conf.log_level, "warn")


class TestSettingsValidator(unittest.TestCase):
    """Тесты валидации файла настроек"""

    def test_valid_settings(self):
        self.assertTrue(SettingsValidator.validate_settings(settings([entry()])))
        self.assertTrue(SettingsValidator.validate_settings({"nginx": settings()["nginx"]}))

    def test_missing_nginx_section(self):
        self.assertFalse(SettingsValidator.validate_settings({"entries": []}))

    def test_missing_binary(self):
        broken = settings()
        del broken["nginx"]["binary_location"]
        self.assertFalse(SettingsValidator.validate_settings(broken))

    def test_entries_must_be_list(self):
        broken = settings()
        broken["entries"] = {"name": "x"}
        self.assertFalse(SettingsValidator.validate_settings(broken))

    def test_invalid_entries(self):
        valid = as_dicts([entry()])[0]
        self.assertTrue(SettingsValidator.validate_entry(valid))
        self.assertFalse(SettingsValidator.validate_entry("entry"))
        self.assertFalse(SettingsValidator.validate_entry({k: v for k, v in valid.items() if k != "host"}))
        self.assertFalse(SettingsValidator.validate_entry(dict(valid, service_port="http")))
        self.assertFalse(SettingsValidator.validate_entry(dict(valid, allow="10.0.0.0/8")))
        self.assertTrue(SettingsValidator.validate_entry(dict(valid, allow=None)))

    def test_get_setting(self):
        self.assertEqual(SettingsValidator.get_setting({"a": None}, "a", 5), 5)
        self.assertEqual(SettingsValidator.get_setting({"a": 0}, "a", 5), 0)


class TestLogger(unittest.TestCase):
    def tearDown(self):
        Logger.set_level(logging.INFO)

    def test_level_from_name(self):
        self.assertEqual(Logger.level_from_name("DEBUG"), logging.DEBUG)
        self.assertEqual(Logger.level_from_name("warning"), logging.WARNING)
        self.assertEqual(Logger.level_from_name("LOUD"), logging.INFO)
        self.assertEqual(Logger.level_from_name(None, default=logging.ERROR), logging.ERROR)

    def test_set_level_applies_to_new_loggers(self):
        existing = Logger.get_logger("nginx")
        Logger.set_level(logging.DEBUG)
        self.assertEqual(existing.level, logging.DEBUG)
        self.assertEqual(Logger.get_logger("test_new_logger").level, logging.DEBUG)
        self.assertIs(Logger.get_logger("nginx"), existing)


class TestConfigManager(BaseControllerTest):
    """Тесты загрузки и отслеживания файла настроек"""

    def test_load(self):
        path = self.write_settings(settings([entry(name="b"), entry(name="a")], ingress_port=9090))
        manager = ConfigManager(path)
        self.assertEqual(manager.get_static_config().ingress_port, 9090)
        self.assertEqual([e.name for e in manager.get_entries()], ["b", "a"])
        copy = manager.get_config()
        copy["entries"] = []
        self.assertEqual(len(manager.get_entries()), 2)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            ConfigManager(self.work_dir + "/missing.json")

    def test_manual_reload_runs_callbacks(self):
        path = self.write_settings(settings([entry()]))
        manager = ConfigManager(path)
        received = []
        manager.add_change_callback(lambda cfg: received.append(len(cfg["entries"])))
        manager.add_change_callback(lambda cfg: 1 / 0)
        manager.add_change_callback(lambda cfg: received.append("after error"))

        self.write_settings(settings([entry(), entry(name="other")]))
        manager.reload_config()
        self.assertEqual(received, [2, "after error"])
        self.assertEqual(len(manager.get_entries()), 2)

    def test_manual_reload_keeps_config_on_bad_json(self):
        path = self.write_settings(settings([entry()]))
        manager = ConfigManager(path)
        with open(path, "w") as f:
            f.write("{not json")
        manager.reload_config()
        self.assertEqual(len(manager.get_entries()), 1)

    def test_file_change_is_detected(self):
        path = self.write_settings(settings([entry()]))
        manager = ConfigManager(path)
        received = []
        manager.add_change_callback(received.append)
        manager.start_monitoring()
        try:
            time.sleep(0.2)
            self.write_settings(settings([entry(), entry(name="second")]))
            self.assertTrue(self.wait_for(lambda: any(len(cfg["entries"]) == 2 for cfg in received)))
            self.assertEqual(len(manager.get_entries()), 2)
        finally:
            manager.stop_monitoring()
        self.assertIsNone(manager.observer)

    def test_invalid_file_change_is_ignored(self):
        path = self.write_settings(settings([entry()]))
        manager = ConfigManager(path)
        received = []
        manager.add_change_callback(received.append)
        manager.start_monitoring()
        try:
            time.sleep(0.2)
            with open(path, "w") as f:
                json.dump({"entries": []}, f)
            time.sleep(0.5)
            self.assertEqual(received, [])
            self.assertEqual(len(manager.get_entries()), 1)
        finally:
            manager.stop_monitoring()


if __name__ == "__main__":
    unittest.main()

"""
Tests for environment settings and the services file loader.
"""
import pytest

from daemon_manager.config import DEFAULT_ADDR, Config, load_services, parse_services
from daemon_manager.errors import ConfigError

GOOD = """
[service.nm]
service_name = "NetworkManager.service"
friendly_name = "Network manager"

[service.ssh]
service_name = "sshd.service"
friendly_name = "OpenSSH"
show_logs = true
"""


class TestLoadServices:
    def test_entries_in_file_order(self, tmp_path):
        path = tmp_path / "services.toml"
        path.write_text(GOOD)
        entries = load_services(str(path))
        assert [e.logical_id for e in entries] == ["nm", "ssh"]
        assert entries[0].unit_name == "NetworkManager.service"
        assert entries[0].logs_enabled is False
        assert entries[1].logs_enabled is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_services(str(tmp_path / "absent.toml"))

    def test_broken_toml(self, tmp_path):
        path = tmp_path / "services.toml"
        path.write_text("[service.nm\n")
        with pytest.raises(ConfigError):
            load_services(str(path))

    def test_duplicate_table_rejected(self, tmp_path):
        path = tmp_path / "services.toml"
        path.write_text(GOOD + '\n[service.nm]\nservice_name = "x.service"\nfriendly_name = "x"\n')
        with pytest.raises(ConfigError):
            load_services(str(path))

    def test_unknown_top_level_key(self, tmp_path):
        path = tmp_path / "services.toml"
        path.write_text(GOOD + '\nlisten = "0.0.0.0"\n')
        with pytest.raises(ConfigError):
            load_services(str(path))


class TestParseServices:
    @pytest.mark.parametrize("name", ["NetworkManager", "bad name.service", "foo;rm.service", ".service"])
    def test_invalid_unit_names(self, name):
        with pytest.raises(ConfigError):
            parse_services({"service": {"x": {"service_name": name, "friendly_name": "X"}}})

    def test_unknown_field(self):
        with pytest.raises(ConfigError):
            parse_services(
                {"service": {"x": {"service_name": "x.service", "friendly_name": "X", "colour": "red"}}}
            )

    def test_missing_friendly_name(self):
        with pytest.raises(ConfigError):
            parse_services({"service": {"x": {"service_name": "x.service"}}})

    def test_empty(self):
        with pytest.raises(ConfigError):
            parse_services({})

    def test_template_unit_allowed(self):
        entries = parse_services({"service": {"g": {"service_name": "getty@tty1.service", "friendly_name": "TTY"}}})
        assert entries[0].unit_name == "getty@tty1.service"


class TestConfig:
    def test_defaults(self):
        config = Config({})
        assert config.config_path == "services.toml"
        assert (config.host, config.port) == DEFAULT_ADDR
        assert config.use_dbus is True
        assert config.log_lines == 100
        assert config.log_since is None

    def test_overrides(self):
        config = Config(
            {
                "DAEMON_MANAGER_ADDR": "0.0.0.0:8080",
                "USE_DBUS": "off",
                "ACTION_TIMEOUT_SECONDS": "2.5",
                "LOG_LINES": "20",
                "LOG_SINCE": "-1h",
                "SYSTEMCTL_PATH": "/run/current-system/sw/bin/systemctl",
            }
        )
        assert (config.host, config.port) == ("0.0.0.0", 8080)
        assert config.use_dbus is False
        assert config.action_timeout == 2.5
        assert config.log_lines == 20
        assert config.log_since == "-1h"
        assert config.systemctl == "/run/current-system/sw/bin/systemctl"

    def test_bad_addr_falls_back(self):
        config = Config({"DAEMON_MANAGER_ADDR": "localhost"})
        assert (config.host, config.port) == DEFAULT_ADDR

    def test_log_level(self):
        assert Config({"LOG_LEVEL": "debug"}).log_level == "DEBUG"

    def test_bad_log_level(self):
        with pytest.raises(ConfigError):
            Config({"LOG_LEVEL": "verbose"})

    @pytest.mark.parametrize("value", ["abc", "-1", "0"])
    def test_bad_number(self, value):
        with pytest.raises(ConfigError):
            Config({"PROBE_TIMEOUT_SECONDS": value})

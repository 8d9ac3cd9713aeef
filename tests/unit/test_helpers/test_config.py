"""
Unit tests for the INI configuration layer.
"""

import os
import stat

import pytest

from vsnap.helpers.config import Config, create_default_config
from vsnap.helpers.constants import DEFAULT_WORKER_IMAGE, SNAPSHOT_PREFIX
from vsnap.helpers.errors import ConfigError


@pytest.mark.unit
class TestConfigDefaults:
    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = Config(config_path=tmp_path / "nope.conf", environ={})
        assert cfg.worker_image == DEFAULT_WORKER_IMAGE
        assert cfg.snapshot_prefix == SNAPSHOT_PREFIX
        assert cfg.docker_base_url is None
        assert cfg.compress_by_default is False
        assert cfg.log_grace_period == 5.0

    def test_defaults_validate_cleanly(self, test_config):
        assert test_config.validate() == []


@pytest.mark.unit
class TestConfigFile:
    def test_file_values_override_defaults(self, tmp_path):
        path = tmp_path / "vsnap.conf"
        path.write_text(
            "[docker]\nimage = registry.local/vsnap:dev\nbase_url = tcp://docker:2375\n"
            "[snapshot]\nprefix = snap\ncompress = yes\n"
        )
        cfg = Config(config_path=path, environ={})
        assert cfg.worker_image == "registry.local/vsnap:dev"
        assert cfg.docker_base_url == "tcp://docker:2375"
        assert cfg.snapshot_prefix == "snap"
        assert cfg.compress_by_default is True

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "vsnap.conf"
        path.write_text("[docker]\nimage = from-file:1\n")
        cfg = Config(config_path=path, environ={"VSNAP_IMAGE": "from-env:2", "VSNAP_DOCKER_HOST": "unix:///x.sock"})
        assert cfg.worker_image == "from-env:2"
        assert cfg.docker_base_url == "unix:///x.sock"

    def test_malformed_file_raises_config_error(self, tmp_path):
        path = tmp_path / "broken.conf"
        path.write_text("this is not an ini file\n")
        with pytest.raises(ConfigError):
            Config(config_path=path, environ={})

    def test_bad_number_raises_config_error(self, tmp_path):
        path = tmp_path / "vsnap.conf"
        path.write_text("[docker]\nlog_grace_period = soon\n")
        cfg = Config(config_path=path, environ={})
        with pytest.raises(ConfigError):
            cfg.log_grace_period

    def test_validate_reports_bad_values(self, tmp_path):
        path = tmp_path / "vsnap.conf"
        path.write_text("[snapshot]\nprefix = bad prefix!\n[logging]\nlevel = LOUD\n")
        errors = Config(config_path=path, environ={}).validate()
        assert any("prefix" in e for e in errors)
        assert any("level" in e for e in errors)

    def test_set_and_get(self, test_config):
        test_config.set("snapshot", "prefix", "other")
        assert test_config.snapshot_prefix == "other"
        assert test_config.get("nosection", "x", "fallback") == "fallback"


@pytest.mark.unit
class TestConfigPersistence:
    def test_save_writes_private_file(self, test_config, tmp_path):
        target = tmp_path / "out" / "vsnap.conf"
        test_config.set("docker", "image", "saved:1")
        test_config.save(target)

        assert stat.S_IMODE(os.stat(target).st_mode) == 0o600
        assert Config(config_path=target, environ={}).worker_image == "saved:1"

    def test_create_default_config(self, tmp_path):
        target = tmp_path / "conf" / "config.conf"
        written = create_default_config(target)
        assert written == target
        assert "[docker]" in target.read_text()

    def test_create_default_config_keeps_existing_without_force(self, tmp_path):
        target = tmp_path / "config.conf"
        target.write_text("[docker]\nimage = mine:1\n")
        create_default_config(target)
        assert "mine:1" in target.read_text()

        create_default_config(target, force=True)
        assert "mine:1" not in target.read_text()

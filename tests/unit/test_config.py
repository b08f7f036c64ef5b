"""
Unit tests for YAML config loading
"""

import os
import sys
from unittest.mock import patch

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.config import DEFAULTS, load_config
from common.utils import format_number, parse_size


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        with patch.dict(os.environ, {}, clear=True):
            cfg = load_config(str(tmp_path / "absent.yaml"))
        assert cfg == DEFAULTS
        assert cfg is not DEFAULTS

    def test_file_is_merged_over_defaults(self, tmp_path):
        p = tmp_path / "params.yaml"
        p.write_text("earthengine:\n  cache_dir: /var/cache/ee\n  skip_cache: true\nserver:\n  port: 8080\n")
        with patch.dict(os.environ, {}, clear=True):
            cfg = load_config(str(p))
        assert cfg["earthengine"]["cache_dir"] == "/var/cache/ee"
        assert cfg["earthengine"]["skip_cache"] is True
        assert cfg["earthengine"]["key_file"] == "earthengine.json"
        assert cfg["server"] == {"host": "0.0.0.0", "port": 8080}

    def test_empty_file(self, tmp_path):
        p = tmp_path / "params.yaml"
        p.write_text("")
        with patch.dict(os.environ, {}, clear=True):
            assert load_config(str(p)) == DEFAULTS

    def test_env_overrides(self, tmp_path):
        env = {
            "EE_KEY_FILE": "/secrets/ee.json",
            "EE_CACHE_DIR": "/tmp/ee",
            "EE_SKIP_CACHE": "yes",
            "EE_PROJECT": "proj-1",
            "LOG_LEVEL": "DEBUG",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config(str(tmp_path / "absent.yaml"))
        assert cfg["earthengine"]["key_file"] == "/secrets/ee.json"
        assert cfg["earthengine"]["cache_dir"] == "/tmp/ee"
        assert cfg["earthengine"]["skip_cache"] is True
        assert cfg["earthengine"]["project"] == "proj-1"
        assert cfg["logging"]["level"] == "DEBUG"

    def test_env_skip_cache_false(self, tmp_path):
        with patch.dict(os.environ, {"EE_SKIP_CACHE": "0"}, clear=True):
            cfg = load_config(str(tmp_path / "absent.yaml"))
        assert cfg["earthengine"]["skip_cache"] is False


class TestUtils:
    def test_format_number(self):
        assert format_number(512) == "512"
        assert format_number(512.0) == "512"
        assert format_number(-118.4) == "-118.4"
        assert format_number(35.40) == "35.4"
        assert format_number(0.1 + 0.2) == "0.30000000000000004"

    def test_parse_size(self):
        assert parse_size("1024x768") == (1024, 768)
        assert parse_size("640,480") == (640, 480)

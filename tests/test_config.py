"""
Tests for config loading and validation in `toolbridge.core.configs`.
"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from toolbridge import __version__
from toolbridge.core.configs import get_client_config, load_raw_config
from toolbridge.core.result_cache import DEFAULT_TTL

ENV_VARS = (
    "TOOLBRIDGE_SERVER",
    "TOOLBRIDGE_SESSION_TIMEOUT_S",
    "TOOLBRIDGE_CALL_TIMEOUT_S",
    "TOOLBRIDGE_CACHE_TTL_S",
)


class TestConfig(unittest.TestCase):
    """Test cases for configuration helpers."""

    def setUp(self):
        """Set up test environment with temporary directories."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = Path(self.temp_dir) / "config.cfg"
        self.env_file = Path(self.temp_dir) / ".env"
        self._env = patch.dict(os.environ, {}, clear=False)
        self._env.start()
        for name in ENV_VARS:
            os.environ.pop(name, None)

    def tearDown(self):
        """Clean up temporary files."""
        import shutil

        self._env.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, defaults: dict) -> None:
        import configparser

        cfg = configparser.ConfigParser()
        cfg["DEFAULT"] = defaults
        with open(self.config_file, "w") as handle:
            cfg.write(handle)

    def test_load_raw_config_lowercases_keys(self):
        self._write_config({"SERVER_COMMAND": "node build/main.js", "CACHE_ENABLED": "true"})

        raw = load_raw_config(self.config_file, self.env_file)
        self.assertEqual(raw["server_command"], "node build/main.js")
        self.assertEqual(raw["cache_enabled"], "true")

    def test_load_raw_config_missing_file_returns_empty_dict(self):
        self.assertEqual(load_raw_config(self.config_file, self.env_file), {})

    def test_load_raw_config_falls_back_to_env_file(self):
        self.env_file.write_text("SERVER_COMMAND=python worker.py\nCACHE_TTL=5\n")
        raw = load_raw_config(self.config_file, self.env_file)
        self.assertEqual(raw["server_command"], "python worker.py")
        self.assertEqual(raw["cache_ttl"], "5")

    def test_config_file_wins_over_env_file(self):
        self._write_config({"SERVER_COMMAND": "from-cfg"})
        self.env_file.write_text("SERVER_COMMAND=from-env\n")
        raw = load_raw_config(self.config_file, self.env_file)
        self.assertEqual(raw["server_command"], "from-cfg")

    def test_get_client_config_defaults(self):
        config = get_client_config({})
        self.assertEqual(config.server_command, [])
        self.assertEqual(config.session_timeout, 30.0)
        self.assertIsNone(config.call_timeout)
        self.assertEqual(config.client_name, "toolbridge")
        self.assertEqual(config.client_version, __version__)
        self.assertFalse(config.cache_enabled)
        self.assertEqual(config.cache_ttl, DEFAULT_TTL)

    def test_get_client_config_parses_values(self):
        config = get_client_config(
            {
                "server_command": 'node "my server/main.js" --quiet',
                "session_timeout": "45",
                "call_timeout": "2.5",
                "client_name": "weather-cli",
                "cache_enabled": "yes",
                "cache_ttl": "1",
            }
        )
        self.assertEqual(config.server_command, ["node", "my server/main.js", "--quiet"])
        self.assertEqual(config.session_timeout, 45.0)
        self.assertEqual(config.call_timeout, 2.5)
        self.assertEqual(config.client_name, "weather-cli")
        self.assertTrue(config.cache_enabled)
        self.assertEqual(config.cache_ttl, 1.0)

    def test_env_overrides(self):
        os.environ["TOOLBRIDGE_SERVER"] = "python other.py"
        os.environ["TOOLBRIDGE_SESSION_TIMEOUT_S"] = "42"
        os.environ["TOOLBRIDGE_CALL_TIMEOUT_S"] = "3"

        config = get_client_config({"server_command": "node main.js", "session_timeout": "1"})

        self.assertEqual(config.server_command, ["python", "other.py"])
        self.assertEqual(config.session_timeout, 42.0)
        self.assertEqual(config.call_timeout, 3.0)

    def test_invalid_timeout_raises(self):
        with self.assertRaises(ValueError):
            get_client_config({"session_timeout": "soon"})
        with self.assertRaises(ValueError):
            get_client_config({"call_timeout": "0"})


if __name__ == "__main__":
    unittest.main()

"""
Unit tests for gitcpan.config module
"""
import unittest
import tempfile
import os
import shutil
import json
import logging
from pathlib import Path
from unittest.mock import patch

import yaml

from gitcpan.config import (
    apply_env_overrides,
    configure_logging,
    get_config_path,
    get_default_config,
    load_config,
    logger,
    merge_configs,
)


class TestConfigManagement(unittest.TestCase):
    """Test configuration management functionality"""

    def setUp(self):
        """Set up test environment"""
        self.temp_dir = tempfile.mkdtemp()
        self.env = patch.dict(os.environ, {'HOME': self.temp_dir})
        self.env.start()
        for key in [k for k in os.environ if k.startswith('GITCPAN_')]:
            del os.environ[key]
        self.config_dir = Path(self.temp_dir) / '.gitcpan'

    def tearDown(self):
        """Clean up test environment"""
        self.env.stop()
        shutil.rmtree(self.temp_dir)

    def test_get_default_config(self):
        """Test default configuration structure"""
        config = get_default_config()

        self.assertIn('metacpan', config)
        self.assertIn('import', config)
        self.assertIn('author', config)
        self.assertIn('logging', config)

        self.assertTrue(config['import']['check_by_default'])
        self.assertEqual(config['import']['tracking_ref'], 'refs/remotes/cpan/master')
        self.assertEqual(config['import']['tag_prefix'], 'v')
        self.assertEqual(config['metacpan']['base_url'], 'https://fastapi.metacpan.org/v1')

    def test_load_config_no_file(self):
        """Test loading config when no file exists"""
        self.assertEqual(load_config(), get_default_config())

    def test_default_config_path(self):
        """Test the path used when nothing exists yet"""
        self.assertEqual(get_config_path(), self.config_dir / 'config.json')

    def test_load_config_json_file(self):
        """Test loading config from JSON file"""
        self.config_dir.mkdir()
        with open(self.config_dir / 'config.json', 'w') as f:
            json.dump({'import': {'check_by_default': False}, 'logging': {'level': 'DEBUG'}}, f)

        config = load_config()

        self.assertFalse(config['import']['check_by_default'])
        self.assertEqual(config['logging']['level'], 'DEBUG')
        # untouched defaults survive the merge
        self.assertEqual(config['import']['tag_prefix'], 'v')

    def test_load_config_yaml_file(self):
        """Test loading config from YAML file"""
        self.config_dir.mkdir()
        with open(self.config_dir / 'config.yaml', 'w') as f:
            yaml.safe_dump({'author': {'name': 'Foo Author', 'email': 'foo@cpan.org'}}, f)

        config = load_config()

        self.assertEqual(config['author']['name'], 'Foo Author')
        self.assertEqual(config['author']['email'], 'foo@cpan.org')

    def test_load_config_toml_file(self):
        """Test loading config from TOML file"""
        self.config_dir.mkdir()
        (self.config_dir / 'config.toml').write_text(
            '[metacpan]\nbase_url = "http://localhost:5000/v1"\ntimeout_seconds = 5\n'
        )

        config = load_config()

        self.assertEqual(config['metacpan']['base_url'], 'http://localhost:5000/v1')
        self.assertEqual(config['metacpan']['timeout_seconds'], 5)

    def test_config_env_variable(self):
        """Test GITCPAN_CONFIG points at an explicit file"""
        custom = Path(self.temp_dir) / 'custom.json'
        custom.write_text(json.dumps({'import': {'tag_prefix': 'release-'}}))
        os.environ['GITCPAN_CONFIG'] = str(custom)

        self.assertEqual(get_config_path(), custom)
        self.assertEqual(load_config()['import']['tag_prefix'], 'release-')

    def test_invalid_config_file_falls_back_to_defaults(self):
        """Test a broken file doesn't stop loading"""
        self.config_dir.mkdir()
        (self.config_dir / 'config.json').write_text('{ this is not json, really }')

        with self.assertLogs('gitcpan', level='ERROR'):
            config = load_config()
        self.assertEqual(config, get_default_config())


class TestEnvOverrides(unittest.TestCase):
    """Test GITCPAN_* environment overrides"""

    def test_boolean_override(self):
        with patch.dict(os.environ, {'GITCPAN_IMPORT_CHECK_BY_DEFAULT': 'false'}):
            config = apply_env_overrides(get_default_config())
        self.assertFalse(config['import']['check_by_default'])

    def test_integer_override(self):
        with patch.dict(os.environ, {'GITCPAN_METACPAN_TIMEOUT_SECONDS': '5'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config['metacpan']['timeout_seconds'], 5)

    def test_string_override(self):
        with patch.dict(os.environ, {'GITCPAN_AUTHOR_EMAIL': 'env@example.com'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config['author']['email'], 'env@example.com')

    def test_unknown_key_ignored(self):
        with patch.dict(os.environ, {'GITCPAN_NO_SUCH_SETTING': 'x'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config, get_default_config())

    def test_config_path_variable_is_not_a_setting(self):
        with patch.dict(os.environ, {'GITCPAN_CONFIG': '/nowhere/config.json'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config, get_default_config())

    def test_numeric_string_stays_a_string(self):
        with patch.dict(os.environ, {'GITCPAN_IMPORT_TAG_PREFIX': '1'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config['import']['tag_prefix'], '1')

    def test_bad_value_ignored(self):
        with patch.dict(os.environ, {'GITCPAN_METACPAN_TIMEOUT_SECONDS': 'soon'}):
            with self.assertLogs('gitcpan', level='WARNING'):
                config = apply_env_overrides(get_default_config())
        self.assertEqual(config['metacpan']['timeout_seconds'], 30)


class TestMergeConfigs(unittest.TestCase):

    def test_nested_merge(self):
        merged = merge_configs(
            {'a': {'b': 1, 'c': 2}, 'd': 3},
            {'a': {'c': 20}, 'e': 5},
        )
        self.assertEqual(merged, {'a': {'b': 1, 'c': 20}, 'd': 3, 'e': 5})


class TestConfigureLogging(unittest.TestCase):

    def tearDown(self):
        logger.setLevel(logging.INFO)

    def test_configured_level(self):
        configure_logging({'logging': {'level': 'warning'}})
        self.assertEqual(logger.level, logging.WARNING)

    def test_verbose_wins(self):
        configure_logging({'logging': {'level': 'ERROR'}}, verbose=True)
        self.assertEqual(logger.level, logging.DEBUG)

    def test_unknown_level(self):
        configure_logging({'logging': {'level': 'LOUD'}})
        self.assertEqual(logger.level, logging.INFO)


if __name__ == '__main__':
    unittest.main()

"""
Tests for settings loading.
"""
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from inventory_ledger.config import Config
from inventory_ledger.exceptions import ConfigError


class TestConfig(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / 'settings.ini'

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, text):
        self.path.write_text(text, encoding='utf-8')
        return Config(self.path)

    def test_defaults_without_file(self):
        settings = Config(self.path)

        self.assertTrue(settings.db_config['enabled'])
        self.assertEqual(settings.db_config['pool_size'], 10)
        self.assertEqual(settings.ledger_config,
                         {'system_user': 'SYSTEM', 'default_min_stock_level': 10, 'seed_sample_data': True})
        self.assertEqual(settings.storage_config['inventory_file'].name, 'inventory_data.json')

    def test_file_values_override_defaults(self):
        settings = self.write(
            "[DATABASE]\nenabled = false\npool_timeout = 2\n"
            f"[STORAGE]\ndirectory = {self.tmp.name}\ninventory_file = items.json\n"
            "[LEDGER]\nseed_sample_data = no\n"
        )

        self.assertFalse(settings.db_config['enabled'])
        self.assertEqual(settings.db_config['pool_timeout'], 2)
        self.assertEqual(settings.storage_config['inventory_file'], Path(self.tmp.name) / 'items.json')
        self.assertEqual(settings.storage_config['archive_file'], Path(self.tmp.name) / 'archive_data.json')
        self.assertFalse(settings.ledger_config['seed_sample_data'])

    def test_explicit_path_gives_unshared_instance(self):
        self.assertIsNot(Config(self.path), Config(self.path))
        self.assertIs(Config(), Config())

    def test_assembled_db_url_quotes_password(self):
        settings = self.write("[DATABASE]\nusername = ledger\npassword = p@ss word\nhost = db\nport = 5433\n")
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('INVENTORY_DB_URL', None)
            self.assertEqual(settings.get_db_url(), 'postgresql://ledger:p%40ss+word@db:5433/dbinventory')

    def test_db_url_precedence(self):
        settings = self.write("[DATABASE]\nurl = sqlite:///ledger.db\n")
        with patch.dict(os.environ, {'INVENTORY_DB_URL': 'sqlite://'}):
            self.assertEqual(settings.get_db_url(), 'sqlite://')
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('INVENTORY_DB_URL', None)
            self.assertEqual(settings.get_db_url(), 'sqlite:///ledger.db')

    def test_bad_numbers_fall_back_to_default(self):
        settings = self.write("[DATABASE]\npool_size = lots\n")
        self.assertEqual(settings.get_int('DATABASE', 'pool_size', 3), 3)
        self.assertIsNone(settings.get('MISSING', 'key'))

    def test_malformed_file(self):
        self.path.write_text("enabled = true\n", encoding='utf-8')
        with self.assertRaises(ConfigError):
            Config(self.path)

    def test_set_and_save(self):
        settings = Config(self.path)
        settings.set('LEDGER', 'system_user', 'ADMIN')
        settings.save()

        self.assertEqual(Config(self.path).ledger_config['system_user'], 'ADMIN')


if __name__ == '__main__':
    unittest.main()

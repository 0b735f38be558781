import os
import configparser
import urllib.parse
from pathlib import Path

from inventory_ledger.exceptions import ConfigError


def _default_storage_dir():
    """Per-user application directory for local snapshot files."""
    app_data = os.getenv('APPDATA')
    if app_data and app_data.strip():
        return str(Path(app_data) / 'NVAInventory')
    return str(Path.home() / '.nva_inventory')


class Config:
    """Configuration manager for the inventory ledger."""

    _instance = None

    def __new__(cls, config_path=None):
        """Singleton pattern implementation.

        Passing an explicit ``config_path`` always builds a fresh, unshared
        instance so tests and tools can point at their own settings file.
        """
        if config_path is not None:
            instance = super(Config, cls).__new__(cls)
            instance._initialized = False
            return instance
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path=None):
        """Initialize the configuration if not already initialized."""
        if self._initialized:
            return

        if config_path is None:
            config_path = os.getenv('INVENTORY_LEDGER_CONFIG', str(Path('config') / 'settings.ini'))
        self._config_path = Path(config_path)
        self._config = configparser.ConfigParser(interpolation=None)

        # Defaults first, file values layered on top
        self._load_defaults()
        if self._config_path.exists():
            try:
                self._config.read(self._config_path)
            except configparser.Error as e:
                raise ConfigError(f"Cannot read settings file {self._config_path}: {e}")

        self._initialized = True

    def _load_defaults(self):
        """Populate default configuration values."""
        self._config['DATABASE'] = {
            'enabled': 'True',
            'url': '',
            'engine': 'postgresql',
            'host': 'localhost',
            'port': '5432',
            'database': 'dbinventory',
            'username': 'postgres',
            'password': '',
            'pool_size': '10',
            'max_overflow': '0',
            'pool_timeout': '5',
            'pool_recycle': '1800',
            'echo': 'False'
        }

        self._config['STORAGE'] = {
            'directory': _default_storage_dir(),
            'inventory_file': 'inventory_data.json',
            'archive_file': 'archive_data.json',
            'transactions_file': 'transactions.json',
            'suppliers_file': 'suppliers.json',
            'categories_file': 'categories.json'
        }

        self._config['LOGGING'] = {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'directory': 'logs',
            'max_size_mb': '10',
            'backup_count': '5',
            'console_output': 'True',
            'file_output': 'True'
        }

        self._config['LEDGER'] = {
            'system_user': 'SYSTEM',
            'default_min_stock_level': '10',
            'seed_sample_data': 'True'
        }

    def save(self):
        """Save configuration to file."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._config_path, 'w') as configfile:
            self._config.write(configfile)

    @property
    def path(self):
        return self._config_path

    def get(self, section, key, default=None):
        """Get configuration value."""
        try:
            return self._config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return default

    def get_int(self, section, key, default=None):
        """Get configuration value as integer."""
        try:
            return self._config.getint(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_float(self, section, key, default=None):
        """Get configuration value as float."""
        try:
            return self._config.getfloat(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        try:
            return self._config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def set(self, section, key, value):
        """Set configuration value (in memory; call ``save`` to persist)."""
        if not self._config.has_section(section):
            self._config.add_section(section)

        self._config.set(section, key, str(value))

    def get_db_url(self):
        """Generate SQLAlchemy database URL.

        ``INVENTORY_DB_URL`` wins over everything, then an explicit
        ``[DATABASE] url``, then the URL assembled from the individual parts.
        """
        env_url = os.getenv('INVENTORY_DB_URL')
        if env_url:
            return env_url

        url = self.get('DATABASE', 'url', '')
        if url:
            return url

        engine = self.get('DATABASE', 'engine', 'postgresql')
        username = self.get('DATABASE', 'username', 'postgres')
        password = urllib.parse.quote_plus(self.get('DATABASE', 'password', ''))
        host = self.get('DATABASE', 'host', 'localhost')
        port = self.get('DATABASE', 'port', '5432')
        database = self.get('DATABASE', 'database', 'dbinventory')

        return f"{engine}://{username}:{password}@{host}:{port}/{database}"

    @property
    def db_config(self):
        """Get database connection pool configuration."""
        return {
            'enabled': self.get_boolean('DATABASE', 'enabled', True),
            'pool_size': self.get_int('DATABASE', 'pool_size', 10),
            'max_overflow': self.get_int('DATABASE', 'max_overflow', 0),
            'pool_timeout': self.get_int('DATABASE', 'pool_timeout', 5),
            'pool_recycle': self.get_int('DATABASE', 'pool_recycle', 1800),
            'echo': self.get_boolean('DATABASE', 'echo', False)
        }

    @property
    def storage_config(self):
        """Get local snapshot file locations as ``Path`` objects."""
        directory = Path(self.get('STORAGE', 'directory', _default_storage_dir())).expanduser()
        return {
            'directory': directory,
            'inventory_file': directory / self.get('STORAGE', 'inventory_file', 'inventory_data.json'),
            'archive_file': directory / self.get('STORAGE', 'archive_file', 'archive_data.json'),
            'transactions_file': directory / self.get('STORAGE', 'transactions_file', 'transactions.json'),
            'suppliers_file': directory / self.get('STORAGE', 'suppliers_file', 'suppliers.json'),
            'categories_file': directory / self.get('STORAGE', 'categories_file', 'categories.json')
        }

    @property
    def log_config(self):
        """Get logging configuration."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True),
            'file_output': self.get_boolean('LOGGING', 'file_output', True)
        }

    @property
    def ledger_config(self):
        """Get ledger business rules."""
        return {
            'system_user': self.get('LEDGER', 'system_user', 'SYSTEM'),
            'default_min_stock_level': self.get_int('LEDGER', 'default_min_stock_level', 10),
            'seed_sample_data': self.get_boolean('LEDGER', 'seed_sample_data', True)
        }

# Global config instance
config = Config()

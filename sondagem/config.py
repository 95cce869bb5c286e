import os


class BaseConfig:
    """Base configuration shared across all environments.

    Class attributes are defaults.  ``apply_env`` overrides them from the
    environment when the app is created, after the ``.env`` files are loaded.
    """

    # Whether apply_env may override these defaults
    READ_ENV = True

    # Flask core
    SECRET_KEY = 'fallback-secret-key-change-me'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # Spreadsheet uploads
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    # Database
    SQLALCHEMY_DATABASE_URI = 'sqlite:///sondagem.db'

    # Classification oracle
    AI_PROVIDER = 'claude'
    AI_MODEL = ''

    # AI API keys
    ANTHROPIC_API_KEY = ''
    OPENAI_API_KEY = ''
    ZHIPU_API_KEY = ''

    # AI budget control
    AI_MONTHLY_BUDGET = 5.0

    # Rate-limit retry policy: attempts, first delay in seconds (doubles)
    ORACLE_MAX_ATTEMPTS = 3
    ORACLE_BACKOFF_BASE = 1.0

    # File logging (0 disables the rotating handler)
    LOG_FILE_MAX_BYTES = 0
    LOG_FILE_BACKUP_COUNT = 3
    LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


class DevelopmentConfig(BaseConfig):
    """Development environment configuration."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///dev.db'


class ProductionConfig(BaseConfig):
    """Production environment configuration."""

    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///prod.db'
    LOG_FILE_MAX_BYTES = 5 * 1024 * 1024


class TestingConfig(BaseConfig):
    """Testing environment configuration."""

    READ_ENV = False
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SECRET_KEY = 'test-secret-key'
    SERVER_NAME = 'localhost'
    AI_PROVIDER = 'claude'
    ANTHROPIC_API_KEY = 'test-key'
    ORACLE_BACKOFF_BASE = 0.0
    LOG_FILE_MAX_BYTES = 0


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}

# Settings read from environment variables, with the type to cast them to
ENV_SETTINGS = {
    'SECRET_KEY': str,
    'MAX_CONTENT_LENGTH': int,
    'SQLALCHEMY_DATABASE_URI': str,
    'AI_PROVIDER': str,
    'AI_MODEL': str,
    'ANTHROPIC_API_KEY': str,
    'OPENAI_API_KEY': str,
    'ZHIPU_API_KEY': str,
    'AI_MONTHLY_BUDGET': float,
    'ORACLE_MAX_ATTEMPTS': int,
    'ORACLE_BACKOFF_BASE': float,
    'LOG_FILE_MAX_BYTES': int,
    'LOG_FILE_BACKUP_COUNT': int,
}


def apply_env(config, environ=None):
    """Override ``config`` entries from the environment.

    Args:
        config: The Flask app config, already loaded from a config class.
        environ: Mapping to read from; defaults to ``os.environ``.

    Raises:
        ValueError: If a variable cannot be cast to its setting's type.
    """
    if not config.get('READ_ENV', True):
        return
    environ = os.environ if environ is None else environ
    for key, cast in ENV_SETTINGS.items():
        if key in environ:
            try:
                config[key] = cast(environ[key])
            except ValueError:
                raise ValueError(f'Invalid value for {key}: {environ[key]!r}') from None

import os
from collections import namedtuple

from flask import Config

from esreindex.exceptions import InvalidOptions


DEFAULT_URL = 'http://127.0.0.1:9200'

DEFAULTS = {
    'ES_URL': DEFAULT_URL,
    'BATCH_SIZE': 1000,
    'SCROLL': '10m',
    'REQUEST_TIMEOUT': 60,
    'VERIFY_CERTS': True,
    'HTTP_AUTH': None,
    'CHECK_TIMEOUT': 60,
    'CHECK_INTERVAL': 1,
    'RETRY_MAX_ATTEMPTS': 30,  # 0 retries forever
    'RETRY_BASE_DELAY': 0.5,
    'RETRY_MAX_DELAY': 30.0,
}

SETTINGS_ENVVAR = 'ESREINDEX_SETTINGS'

CopyOptions = namedtuple('CopyOptions', ['remove_destination', 'update_existing', 'batch_size', 'interactive'])

RetryPolicy = namedtuple('RetryPolicy', ['max_attempts', 'base_delay', 'max_delay'])


def load_config(settings_file=None):
    """
    Build the configuration: built-in defaults, then an optional python settings file,
    then the file named by $ESREINDEX_SETTINGS (if set)
    :param settings_file: str, path to a python settings file (ex. settings.cfg)
    :return: flask.Config
    """
    config = Config(os.getcwd(), defaults=DEFAULTS)
    if settings_file is not None:
        config.from_pyfile(settings_file)
    config.from_envvar(SETTINGS_ENVVAR, silent=True)
    return config


def build_options(config=None, remove_destination=False, update_existing=False, batch_size=None,
                  interactive=False):
    """Merge explicit options with configured defaults into an immutable CopyOptions."""
    config = config if config is not None else load_config()
    if batch_size is None:
        batch_size = config['BATCH_SIZE']

    try:
        batch_size = int(batch_size)
    except (TypeError, ValueError):
        raise InvalidOptions('batch size must be an integer, got %r' % (batch_size,))
    if batch_size <= 0:
        raise InvalidOptions('batch size must be greater than 0, got %d' % batch_size)

    return CopyOptions(remove_destination=bool(remove_destination),
                       update_existing=bool(update_existing),
                       batch_size=batch_size,
                       interactive=bool(interactive))


def build_retry_policy(config=None):
    config = config if config is not None else load_config()
    max_attempts = int(config['RETRY_MAX_ATTEMPTS'])
    if max_attempts < 0:
        raise InvalidOptions('RETRY_MAX_ATTEMPTS must be >= 0, got %d' % max_attempts)
    return RetryPolicy(max_attempts=max_attempts,
                       base_delay=float(config['RETRY_BASE_DELAY']),
                       max_delay=float(config['RETRY_MAX_DELAY']))

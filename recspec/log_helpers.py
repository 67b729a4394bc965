# Copyright (c) 2024 NASK. All rights reserved.

import collections
import contextlib
import logging
import logging.config
import os.path
import sys
import time

from recspec.const import (
    ETC_DIR,
    TOPLEVEL_PACKAGES,
    USER_DIR,
)


#
# Logging preparation'n'configuration

def get_logger(name=None):
    """
    Like logging.getLogger(...) but replacing '__main__' with a sensible name.

    For example, if the script path is '/whatever/recspec/tools/foo.py'
    get_logger('__main__') is equivalent to logging.getLogger('recspec.tools.foo').
    """
    if name == '__main__':
        # try to get the script path from __main__.__file__
        script_path = getattr(sys.modules['__main__'], '__file__', None)
        if not script_path:
            # or, if __main__ does not have a non-blank __file__ attribute,
            # extract the script path from sys.argv...
            script_path = sys.argv[0]
        # strip off the filename extension...
        remaining = os.path.splitext(script_path)[0]
        # ..and pop path name segments up to
        # (and including) the toplevel package name
        aggregated_segments = collections.deque()
        while True:
            remaining, segment = os.path.split(remaining)
            segment = segment.replace('.', 'D')  # just in case of '.' or '..'
            aggregated_segments.appendleft(segment)
            if segment in TOPLEVEL_PACKAGES or remaining in ('', '/'):
                break
        name = '.'.join(aggregated_segments)
    return logging.getLogger(name)


_LOGGER = get_logger(__name__)

_loaded_configuration_paths = set()


def configure_logging(suffix=None, config_dirs=None):
    """
    Configure logging, using `logging.config.fileConfig()`.

    Kwargs:
        `suffix` (default: :obj:`None`):
            If :obj:`None`, the configuration is loaded from
            `logging.conf` files; otherwise from `logging-<suffix>.conf`
            files.
        `config_dirs` (default: :obj:`None`):
            A sequence of directories to look for the files in;
            :obj:`None` means: (`ETC_DIR`, `USER_DIR`).

    Raises:
        :exc:`~exceptions.RuntimeError` if a file could not be applied
        or if no configuration has ever been loaded.

    A file that has already been loaded is skipped (with a warning).
    """
    if config_dirs is None:
        config_dirs = (ETC_DIR, USER_DIR)
    file_name = ('logging.conf' if suffix is None
                 else 'logging-{0}.conf'.format(suffix))
    file_paths = [os.path.join(config_dir, file_name)
                  for config_dir in config_dirs]
    for path in file_paths:
        if path in _loaded_configuration_paths:
            _LOGGER.warning('Ignored attempt to load logging configuration '
                            'file %a that has already been used', path)
            continue
        if not os.path.isfile(path):
            continue
        try:
            logging.config.fileConfig(path, disable_existing_loggers=False)
        except Exception as exc:
            raise RuntimeError('error while configuring logging, '
                               'using settings from configuration file {0!a}'
                               .format(path)) from exc
        _LOGGER.info('Logging configuration loaded from %a', path)
        _loaded_configuration_paths.add(path)
    if not _loaded_configuration_paths:
        raise RuntimeError('logging configuration not loaded: '
                           'could not open any of the files: {0}'
                           .format(', '.join(map(ascii, file_paths))))


@contextlib.contextmanager
def logging_configured(suffix=None, config_dirs=None):
    """
    A context manager: configure logging and log any fatal exception.
    """
    configure_logging(suffix, config_dirs)
    try:
        yield
    except SystemExit as exc:
        if exc.code:
            _LOGGER.critical('SystemExit(%a) occurred. Exiting...',
                             exc.code, exc_info=True)
        else:
            _LOGGER.info('SystemExit(%a) occurred. Exiting...', exc.code)
        raise
    except KeyboardInterrupt:
        _LOGGER.warning('KeyboardInterrupt occurred. Exiting...')
        sys.exit(1)
    except BaseException:
        _LOGGER.critical('Irrecoverable problem. Exiting...', exc_info=True)
        raise


#
# Custom log formatters

class UTCFormatter(logging.Formatter):

    r"""
    A formatter that *always* uses UTC time (with the ` UTC` suffix).

    >>> formatter = UTCFormatter('%(asctime)s %(message)s')
    >>> record = logging.LogRecord('mylog', 10, '/', 997,
    ...                            msg='spam: %r', args=(42,),
    ...                            exc_info=None)
    >>> record.created = 0.125
    >>> record.msecs = 125
    >>> formatter.format(record)
    '1970-01-01 00:00:00,125 UTC spam: 42'
    """

    converter = time.gmtime

    def formatTime(self, record, datefmt=None):
        s = super(UTCFormatter, self).formatTime(record, datefmt)
        if datefmt is None:
            s += ' UTC'
        return s

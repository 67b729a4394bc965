# Copyright (c) 2024 NASK. All rights reserved.

"""
Configuration: *config specs* and loading of configuration sections.

A *config spec* is a string in an ini-like format that defines the
expected configuration sections and options -- their default values
(an option without a default value is *required*) and the names of
converters used to convert raw option values (the default converter
is ``str``):

>>> config_spec = '''
... [foo]
... abc = 42 :: int        ; this is a comment
... flag = no :: bool
... name = spam
... required_one :: float
... '''
>>> Config.section(config_spec, settings={'foo.required_one': '0.5',
...                                       'foo.flag': 'on'})
ConfigSection('foo', {'abc': 42, 'flag': True, 'name': 'spam', 'required_one': 0.5})

The raw option values are taken either from the given `settings`
mapping (``'<section>.<option>'`` -> raw `str` value), or -- if no
`settings` are given -- from the configuration files found in the
config directories (see :data:`recspec.const.ETC_DIR` and
:data:`recspec.const.USER_DIR`) whose names match
:attr:`Config.DEFAULT_CONFIG_FILENAME_REGEX` (except the logging
configuration files).
"""


import configparser
import os
import os.path as osp
import re
from collections.abc import Mapping

from recspec.const import ETC_DIR, USER_DIR
from recspec.encoding_helpers import (
    ascii_str,
    str_to_bool,
)
from recspec.log_helpers import get_logger


_LOGGER = get_logger(__name__)


class ConfigError(Exception):

    """
    A generic, `Config`-related, exception class.

    >>> print(ConfigError('Some Message'))
    [configuration-related error] Some Message
    """

    def __str__(self):
        return '[configuration-related error] ' + super().__str__()


class _KeyErrorSubclassMixin(KeyError):

    def __str__(self):
        # skipping `KeyError.__str__()` which would apply `repr()`
        # to the sole constructor argument
        return Exception.__str__(self)


class NoConfigSectionError(ConfigError, _KeyErrorSubclassMixin):

    """
    Raised by `Config.__getitem__()` when the specified section is missing.

    >>> exc = NoConfigSectionError('some_sect')
    >>> isinstance(exc, ConfigError) and isinstance(exc, KeyError)
    True
    >>> print(exc)
    [configuration-related error] no config section `some_sect`
    """

    def __init__(self, sect_name=None, *args):
        sect_ref = f'`{sect_name}`' if sect_name is not None else '<unspecified>'
        super().__init__(f'no config section {sect_ref}', *args)
        self.sect_name = sect_name


class NoConfigOptionError(ConfigError, _KeyErrorSubclassMixin):

    """
    Raised by `ConfigSection.__getitem__()` when the specified option is missing.

    >>> exc = NoConfigOptionError('mysect', 'myopt')
    >>> isinstance(exc, ConfigError) and isinstance(exc, KeyError)
    True
    >>> print(exc)
    [configuration-related error] no config option `myopt` in section `mysect`
    """

    def __init__(self, sect_name=None, opt_name=None, *args):
        sect_ref = f'`{sect_name}`' if sect_name is not None else '<unspecified>'
        opt_ref = f'`{opt_name}`' if opt_name is not None else '<unspecified>'
        super().__init__(f'no config option {opt_ref} in section {sect_ref}', *args)
        self.sect_name = sect_name
        self.opt_name = opt_name


def _list_of_str(s):
    return [item.strip() for item in s.split(',') if item.strip()]


class Config(dict):

    """
    A mapping: config section name -> :class:`ConfigSection`.

    Args:
        `config_spec` (a `str`):
            The *config spec* (see the module docs).

    Kwargs:
        `settings` (default: :obj:`None`):
            A mapping (``'<section>.<option>'`` -> raw `str` value) or
            :obj:`None` (then configuration files are read).
        `custom_converters` (default: :obj:`None`):
            A mapping (converter name -> converter callable) that
            supplements :attr:`BASIC_CONVERTERS`.
        `config_dirs` (default: :obj:`None`):
            The directories to look for configuration files in
            (:obj:`None` means: (`ETC_DIR`, `USER_DIR`)); ignored if
            `settings` is not :obj:`None`.

    Raises:
        :exc:`ConfigError` for an invalid config spec, a missing
        required option, an illegal option or a conversion failure.
    """

    BASIC_CONVERTERS = {
        'str': str,
        'bool': str_to_bool,
        'int': int,
        'float': float,
        'list_of_str': _list_of_str,
    }
    DEFAULT_CONVERTER_SPEC = 'str'

    DEFAULT_CONFIG_FILENAME_REGEX = re.compile(r'\A[0-9][0-9]_.*\.conf\Z')
    DEFAULT_CONFIG_FILENAME_EXCLUDING_REGEX = re.compile(r'\Alogging[-.]')

    _SPEC_SECTION_REGEX = re.compile(r'\A\[(?P<sect_name>[^\]\s]+)\]\Z')
    _SPEC_OPTION_REGEX = re.compile(r'''
        \A
        (?P<opt_name>
            [^\s=:;\[\]]+
        )
        \s*
        (?:
            =
            \s*
            (?P<default>
                .*?
            )
        )?
        \s*
        (?:
            ::
            \s*
            (?P<converter>
                \w+
            )
        )?
        \Z
    ''', re.VERBOSE)
    _SPEC_INLINE_COMMENT_REGEX = re.compile(r'(?:\A|\s+);.*\Z')

    def __init__(self, config_spec, settings=None, custom_converters=None, config_dirs=None):
        super().__init__()
        converters = dict(self.BASIC_CONVERTERS)
        if custom_converters is not None:
            converters.update(custom_converters)
        parsed_spec = self._parse_config_spec(config_spec)
        if settings is None:
            raw_sections = self._load_config_files(config_dirs)
        else:
            raw_sections = self._get_raw_sections_from_settings(settings)
        for sect_name, opt_specs in parsed_spec.items():
            self[sect_name] = self._make_section(
                sect_name,
                opt_specs,
                raw_sections.get(sect_name, {}),
                converters)

    def __missing__(self, sect_name):
        raise NoConfigSectionError(sect_name)

    @classmethod
    def section(cls, /, *args, **kwargs):
        """
        Create a `Config` and pick its sole section.

        It requires that the *config spec* contains exactly one config
        section.

        >>> config_spec = '''
        ... [foo]
        ... abc = 42 :: int'''
        >>> Config.section(config_spec, settings={'foo.abc': '123'})
        ConfigSection('foo', {'abc': 123})
        >>> Config.section('', settings={})   # doctest: +ELLIPSIS
        Traceback (most recent call last):
          ...
        recspec.config.ConfigError: ...but no sections found
        """
        config = cls(*args, **kwargs)
        try:
            [section] = config.values()
        except ValueError:
            all_sections = sorted(config)
            sections_descr = (
                'the following sections found: {0}'.format(
                    ', '.join(map(repr, map(ascii_str, all_sections))))
                if all_sections else 'no sections found')
            raise ConfigError(
                'expected config spec that defines '
                'exactly one section but ' + sections_descr) from None
        return section

    #
    # Private helpers

    @classmethod
    def _parse_config_spec(cls, config_spec):
        parsed_spec = {}
        opt_specs = None
        for line in config_spec.splitlines():
            line = cls._SPEC_INLINE_COMMENT_REGEX.sub('', line).strip()
            if not line:
                continue
            match = cls._SPEC_SECTION_REGEX.match(line)
            if match:
                opt_specs = parsed_spec.setdefault(match.group('sect_name'), {})
                continue
            match = cls._SPEC_OPTION_REGEX.match(line)
            if match is None or opt_specs is None:
                raise ConfigError('invalid config spec line: {!a}'.format(line))
            converter_name = match.group('converter') or cls.DEFAULT_CONVERTER_SPEC
            opt_specs[match.group('opt_name')] = (match.group('default'), converter_name)
        return parsed_spec

    @staticmethod
    def _get_raw_sections_from_settings(settings):
        if not isinstance(settings, Mapping):
            raise TypeError('settings should be a mapping (got {!a})'.format(settings))
        raw_sections = {}
        for key, raw_value in settings.items():
            sect_name, sep, opt_name = key.partition('.')
            if not sep:
                # not a config-section-related key (e.g., a Pyramid-specific one)
                continue
            if not isinstance(raw_value, str):
                raise ConfigError('the value of setting {!a} is not a str '
                                  '(got {!a})'.format(key, raw_value))
            raw_sections.setdefault(sect_name, {})[opt_name] = raw_value
        return raw_sections

    @classmethod
    def _load_config_files(cls, config_dirs=None):
        if config_dirs is None:
            config_dirs = (ETC_DIR, USER_DIR)
        config_files = []
        for config_dir in config_dirs:
            config_files.extend(cls._get_config_file_paths(config_dir))
        if not config_files:
            _LOGGER.warning('No config files to read')
            return {}
        config_parser = configparser.ConfigParser(interpolation=None)
        ok_config_files = config_parser.read(config_files, encoding='utf-8')
        err_config_files = set(config_files).difference(ok_config_files)
        if err_config_files:
            _LOGGER.warning(
                'Config files that could not be read '
                '(check their permission modes?): %s', ', '.join(
                    '"{0}"'.format(ascii_str(name))
                    for name in sorted(err_config_files, key=config_files.index)))
        if ok_config_files:
            _LOGGER.info('Config files read properly: %s', ', '.join(
                '"{0}"'.format(ascii_str(name))
                for name in ok_config_files))
        return {sect_name: dict(config_parser.items(sect_name))
                for sect_name in config_parser.sections()}

    @classmethod
    def _get_config_file_paths(cls, path):
        config_files = []
        for directory, _, fnames in os.walk(path):
            for fname in fnames:
                if (cls.DEFAULT_CONFIG_FILENAME_REGEX.search(fname)
                      and not cls.DEFAULT_CONFIG_FILENAME_EXCLUDING_REGEX.search(fname)):
                    config_files.append(osp.join(directory, fname))
        return sorted(config_files)

    @staticmethod
    def _make_section(sect_name, opt_specs, raw_opts, converters):
        illegal_opt_names = set(raw_opts).difference(opt_specs)
        if illegal_opt_names:
            raise ConfigError('illegal options in section {!a}: {}'.format(
                sect_name, ', '.join(map(ascii, sorted(illegal_opt_names)))))
        section = ConfigSection(sect_name)
        for opt_name, (default, converter_name) in opt_specs.items():
            try:
                converter = converters[converter_name]
            except KeyError:
                raise ConfigError('unknown converter {!a} (specified for option '
                                  '`{}.{}`)'.format(converter_name, sect_name, opt_name)) from None
            raw_value = raw_opts.get(opt_name, default)
            if raw_value is None:
                raise ConfigError('missing required config option `{}.{}`'
                                  .format(sect_name, opt_name))
            try:
                section[opt_name] = converter(raw_value)
            except Exception as exc:
                raise ConfigError('error when converting option `{}.{}` '
                                  '(raw value: {!a}): {}'.format(
                                      sect_name, opt_name, raw_value,
                                      ascii_str(exc))) from exc
        return section


class ConfigSection(dict):

    """
    A subclass of `dict`; its instances are values of `Config` mappings.

    Lookup-by-key failures are signalled with `NoConfigOptionError`
    which is a subclass of both `KeyError` and `ConfigError`.

    >>> s = ConfigSection('some_sect', {'some_opt': 'FOO_bar,spam'})
    >>> s
    ConfigSection('some_sect', {'some_opt': 'FOO_bar,spam'})
    >>> s.sect_name
    'some_sect'
    >>> s['another_opt']     # doctest: +ELLIPSIS
    Traceback (most recent call last):
      ...
    recspec.config.NoConfigOptionError: [conf... `another_opt` in section `some_sect`
    """

    def __init__(self, sect_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sect_name = sect_name

    def __missing__(self, opt_name):
        raise NoConfigOptionError(self.sect_name, opt_name)

    def __repr__(self):
        return '{}({!r}, {})'.format(type(self).__qualname__, self.sect_name, super().__repr__())

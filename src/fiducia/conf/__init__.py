''' Module configuration

    A value is looked up, in order, in:
        1. the environment, as `FIDUCIA__<SECTION>__<KEY>` (e.g. FIDUCIA__FIDUCIA_TRANSFER__MAX_SLIPPAGE_BPS)
        2. the `[<module name>]` section of the ini files named by FIDUCIA_CONFIG_FILE
        3. the `defaults.py` of the module
        4. `sysdefaults.py`

    The type of the default value decides how a configured string is parsed.
    Lists and dicts are given as JSON.
'''

import configparser
import json
import logging
import os
import re

from types import ModuleType
from typing import Any, Callable, Dict, Union

from . import sysdefaults


def env(name: str, defval: Any, coercer: Callable[[Any], Any] = None):
    value = os.environ.get(name, defval)
    return coercer(value) if callable(coercer) else value


FIDUCIA_CONFIG_FILES = env("FIDUCIA_CONFIG_FILE", "fiducia.ini|config.ini").split('|')
FIDUCIA_ENV_PREFIX = "FIDUCIA__"
SYSTEM_SECTION = "fiducia.system"
DEBUG_ALL_CONFIG_VALUE = "#ALL"

RX_INVALID_OPTION = re.compile(r"[^A-Za-z\d_]+")
TRUE_VALUES = ('1', 'yes', 'true', 'on')
FALSE_VALUES = ('0', 'no', 'false', 'off')


def _env_key(section, key):
    return f"{FIDUCIA_ENV_PREFIX}{RX_INVALID_OPTION.sub('_', section).upper()}__{key}"


def parse_value(raw: str, default: Any):
    ''' Coerce a configured string to the type of its default value '''
    # bool is a subclass of int, it must be checked first
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered not in TRUE_VALUES + FALSE_VALUES:
            raise ValueError(f"Invalid boolean value: {raw!r}")
        return lowered in TRUE_VALUES
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, (dict, list, tuple)):
        return json.loads(raw)
    if isinstance(default, (str, type(None))):
        return raw

    raise ValueError(f"Not supported config value type [{type(default)}].")


def __module_config__():
    __parser__ = configparser.ConfigParser()
    __parser__.optionxform = lambda s: RX_INVALID_OPTION.sub("_", s.strip()).upper()
    __parser__.read(FIDUCIA_CONFIG_FILES)

    __config__: Dict[str, "ModuleConfig"] = {}

    def lookup(section, key):
        ''' Configured string for `key` and where it came from, or None '''
        env_key = _env_key(section, key)
        if env_key in os.environ:
            return os.environ[env_key], env_key

        if __parser__.has_option(section, key):
            return __parser__.get(section, key), FIDUCIA_CONFIG_FILES

        return None

    class ModuleConfig(object):
        def __init__(self, module_name: str, *defaults):
            if module_name in __config__:
                raise RuntimeError(f"Module [{module_name}] already configured.")

            self.__name__ = module_name
            self.__values__: Dict[str, Any] = {}
            self.__origin__: Dict[str, Any] = {}

            for source in defaults + (sysdefaults,):
                self._load(source)

            if sysdefaults.DEBUG_MODULE_CONFIG in (DEBUG_ALL_CONFIG_VALUE, module_name):
                logging.debug("=== MODULE CONFIG [%s] ===", module_name)
                for key, value in self.__values__.items():
                    logging.debug(" - [%s] %r <= %s", key, value, self.__origin__[key])

        def _load(self, source):
            if source is None:
                return

            if isinstance(source, ModuleConfig):
                items = source.items()
            else:
                items = ((k, v) for k, v in source.__dict__.items() if not k.startswith('_'))

            for key, default in items:
                if not key.isupper() or key in self.__values__:
                    continue

                configured = lookup(self.__name__, key)
                if configured is None:
                    self.__values__[key] = default
                    self.__origin__[key] = getattr(source, '__name__', '<defaults>')
                    continue

                raw, origin = configured
                try:
                    self.__values__[key] = parse_value(raw, default)
                except ValueError as e:
                    raise ValueError(f"Invalid config value [{self.__name__}.{key}] from {origin}: {e}") from e

                self.__origin__[key] = origin

        def __getattr__(self, name):
            try:
                return self.__values__[name]
            except KeyError:
                raise AttributeError(f"Config [{self.__name__}] has no value [{name}]")

        def __getitem__(self, name):
            return self.__values__[name]

        def get(self, name, default=None):
            return self.__values__.get(name, default)

        def origin(self, name):
            return self.__origin__[name]

        def items(self):
            ''' Only UPPERCASE keys declared by the defaults are listed '''
            yield from self.__values__.items()

        def keys(self):
            yield from self.__values__.keys()

        def as_dict(self):
            return self.__values__.copy()

    def get_config(config_key: str, *defaults: Union[ModuleType, ModuleConfig]) -> ModuleConfig:
        if config_key not in __config__:
            __config__[config_key] = ModuleConfig(config_key, *defaults)

        return __config__[config_key]

    default_config = get_config(SYSTEM_SECTION, sysdefaults)
    return ModuleConfig, get_config, default_config


ModuleConfig, getConfig, default_config = __module_config__()

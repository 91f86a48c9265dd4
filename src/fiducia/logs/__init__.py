''' Per module loggers, configured from the module config:

    - LOG_LEVEL: name of the level (e.g. "info")
    - LOG_OUTPUT: "stderr", "stdout", "file://<path>" or a list of those
    - LOG_FORMATTER / LOG_DATEFMT: record format, `{hostname}` is substituted
    - LOG_COLORED: colorize the output with coloredlogs instead of the
      LOG_OUTPUT handlers, defaults to the system section
'''
import logging
import platform
import sys

from typing import Optional

from fiducia.conf import ModuleConfig, default_config


def getLoggerHandler(logspec: Optional[str] = None):
    if logspec is None or logspec == "stderr":
        return logging.StreamHandler(sys.stderr)

    if logspec == "stdout":
        return logging.StreamHandler(sys.stdout)

    if logspec.startswith("file://"):
        return logging.FileHandler(logspec[len("file://"):])

    raise ValueError(f"Cannot parse logging spec: {logspec}")


def _log_level(log_config):
    level = log_config.get("LOG_LEVEL")
    if not isinstance(level, str):
        return logging.NOTSET

    return getattr(logging, level.upper(), logging.NOTSET)


def _log_outputs(log_config):
    outputs = log_config.get("LOG_OUTPUT")
    if not isinstance(outputs, (list, tuple)):
        outputs = (outputs, )

    return [getLoggerHandler(output) for output in outputs if output]


def __closure__():
    FIDUCIA_LOGGERS = {}

    def setupLogger(module_name: Optional[str], log_config: Optional[ModuleConfig]):
        module_logger = logging.getLogger(module_name)
        if log_config is None:
            return module_logger

        log_level = _log_level(log_config)
        module_logger.setLevel(log_level)
        log_handlers = []

        formatter = log_config.get("LOG_FORMATTER")
        datefmt = log_config.get("LOG_DATEFMT")
        if not isinstance(formatter, str):
            log_handlers = _log_outputs(log_config)
        elif log_config.get("LOG_COLORED", default_config.LOG_COLORED):
            import coloredlogs
            # coloredlogs attaches its own stream handler, nothing else is added
            formatter = formatter.format(hostname=platform.node().split(".")[0])
            coloredlogs.install(fmt=formatter, datefmt=datefmt, level=log_level, logger=module_logger)
        else:
            formatter = formatter.format(hostname=platform.node().split(".")[0])
            log_handlers = _log_outputs(log_config)
            for handler in log_handlers:
                handler.setFormatter(logging.Formatter(formatter, datefmt))

        if module_name is None:
            logging.basicConfig(handlers=log_handlers or None)
        else:
            for handler in log_handlers:
                module_logger.addHandler(handler)

        FIDUCIA_LOGGERS[module_name] = module_logger
        return module_logger

    def getLogger(module_name, log_config=None):
        if module_name in FIDUCIA_LOGGERS:
            return FIDUCIA_LOGGERS[module_name]

        return setupLogger(module_name, log_config)

    return getLogger, setupLogger(None, default_config)


getLogger, default_logger = __closure__()

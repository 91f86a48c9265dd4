import inspect

from functools import wraps

from fiducia.helper import camel_to_lower

from . import logger, config
from . import event as ce
from . import command as cc
from . import message as cm
from .entity import DOMAIN_ENTITY_MARKER, DOMAIN_ENTITY_KEY, DomainEntityType
from .exceptions import DomainEntityError

COMMAND_PROCESSOR_FUNC = '_process'
DEBUG = config.DEBUG


class OrderCounter:
    ORDER_COUNTER = 0

    @classmethod
    def priotize(cls, priority: int) -> int:
        if not priority:
            cls.ORDER_COUNTER += 1
            return cls.ORDER_COUNTER

        # Maximum number of handlers until they mess up the order
        return priority * 32768


def _entity_key(cls):
    meta = getattr(cls, 'Meta', None)
    return getattr(meta, 'key', None) or camel_to_lower(cls.__name__)


def _assert_subclass(entity_cls, base_cls):
    if not (isinstance(entity_cls, type) and issubclass(entity_cls, base_cls)):
        raise DomainEntityError(
            "D00.201",
            f"Entity must be subclass of [{base_cls.__name__}] [{entity_cls}]"
        )


def _assert_coroutine_func(func):
    if not (inspect.iscoroutinefunction(func) or inspect.isasyncgenfunction(func)):
        raise DomainEntityError(
            "D00.202",
            f"Function must be an async (i.e. async def ): {func}"
        )


class DomainEntityRegistry(object):
    ''' Commands, events and messages are registered per domain class.
        Registration tables are copied before modification so that a
        domain never alters the registry of its parent class.
    '''

    _entity_registry = dict()
    _cmd_processors = tuple()
    _msg_dispatchers = tuple()

    @classmethod
    def _register_entity(domain_cls, entity_cls, kind):
        key = _entity_key(entity_cls)
        identifier = (key, kind)

        if identifier in domain_cls._entity_registry:
            raise DomainEntityError(
                "D00.203",
                f'Entity already registered [{identifier}] within domain [{domain_cls.__namespace__}]')

        setattr(entity_cls, DOMAIN_ENTITY_MARKER, (key, kind, domain_cls.__namespace__))
        setattr(entity_cls, DOMAIN_ENTITY_KEY, key)

        domain_cls._entity_registry = domain_cls._entity_registry.copy()
        domain_cls._entity_registry[identifier] = entity_cls
        DEBUG and logger.info("[REGISTERED ENTITY] %s/%s [%s]", domain_cls.__namespace__, kind.name, key)
        return entity_cls

    @classmethod
    def command(domain_cls, cmd_cls):
        _assert_subclass(cmd_cls, cc.Command)
        domain_cls._register_entity(cmd_cls, DomainEntityType.COMMAND)

        # Allow command processors to be included within the command class
        if (func := cmd_cls.__dict__.get(COMMAND_PROCESSOR_FUNC)) is not None:
            _assert_coroutine_func(func)

            @wraps(func)
            def _processor(agg, stm, bundle):
                return func(cmd_cls(bundle), agg, stm, bundle.payload)

            domain_cls.command_processor(cmd_cls)(_processor)

        return cmd_cls

    @classmethod
    def event(domain_cls, evt_cls):
        _assert_subclass(evt_cls, ce.Event)
        return domain_cls._register_entity(evt_cls, DomainEntityType.EVENT)

    @classmethod
    def message(domain_cls, msg_cls):
        _assert_subclass(msg_cls, cm.Message)
        return domain_cls._register_entity(msg_cls, DomainEntityType.MESSAGE)

    @classmethod
    def command_processor(domain_cls, *cmd_classes, priority=0):
        ''' Register a processor `(agg, stm, bundle) -> async iterator` for the given commands '''
        def _decorator(func):
            for cmd_cls in cmd_classes:
                _assert_subclass(cmd_cls, cc.Command)
                key = _entity_key(cmd_cls)
                domain_cls._cmd_processors += ((OrderCounter.priotize(priority), key, func),)

            return func

        return _decorator

    @classmethod
    def message_dispatcher(domain_cls, *msg_classes, priority=0):
        ''' Register a dispatcher `async (domain, message_bundle)` for the given messages '''
        def _decorator(func):
            _assert_coroutine_func(func)
            for msg_cls in msg_classes:
                _assert_subclass(msg_cls, cm.Message)
                key = _entity_key(msg_cls)
                domain_cls._msg_dispatchers += ((OrderCounter.priotize(priority), key, func),)

            return func

        return _decorator

    @classmethod
    def _lookup_entity(domain_cls, key, kind):
        try:
            return domain_cls._entity_registry[key, kind]
        except KeyError:
            raise DomainEntityError(
                "D00.204",
                f'{kind.name.title()} [{key}] is not registered within domain [{domain_cls.__namespace__}]')

    @classmethod
    def lookup_command(domain_cls, key):
        return domain_cls._lookup_entity(key, DomainEntityType.COMMAND)

    @classmethod
    def lookup_event(domain_cls, key):
        return domain_cls._lookup_entity(key, DomainEntityType.EVENT)

    @classmethod
    def lookup_message(domain_cls, key):
        return domain_cls._lookup_entity(key, DomainEntityType.MESSAGE)

    @classmethod
    def entity_registered(domain_cls, entity_cls):
        try:
            key, kind, _ = getattr(entity_cls, DOMAIN_ENTITY_MARKER)
            return (key, kind) in domain_cls._entity_registry
        except AttributeError:
            return False

import contextvars
import inspect

from collections import defaultdict
from contextlib import contextmanager
from types import SimpleNamespace

from fiducia.data import UUID_GENR
from fiducia.helper import camel_to_lower, KeyedLock

from . import logger
from . import command as cc
from . import event as ce
from . import message as cm

from .aggregate import Aggregate, AggregateRoot
from .context import DomainContext
from .decorators import DomainEntityRegistry
from .exceptions import CommandProcessingError
from .logstore import DomainLogStore
from .signal import DomainSignal as sig, DomainSignalManager
from .state import StateManager


def _handler_table(handlers):
    ''' {entity key: (handler, ...)} with the highest priority first '''
    table = defaultdict(tuple)
    for _, key, func in sorted(handlers, key=lambda entry: entry[0], reverse=True):
        table[key] += (func,)

    return dict(table)


class DomainSession(object):
    ''' State of one `Domain.session()`: the context record, the aggregate
        and everything collected while its commands are processed. '''

    def __init__(self, domain, **kwargs):
        self.data = domain.__context__(
            _id=UUID_GENR(),
            domain=domain.__namespace__,
            revision=domain.__revision__,
            **kwargs
        )
        self.aggregate = domain.__aggregate__(domain)
        self.events = []
        self.messages = []

    @property
    def id(self):
        return self.data._id

    @property
    def actor(self):
        return self.data.actor

    def drain(self):
        events, messages = tuple(self.events), tuple(self.messages)
        self.events.clear()
        self.messages.clear()
        return events, messages


class Domain(DomainSignalManager, DomainEntityRegistry):
    __namespace__   = None
    __aggregate__   = Aggregate
    __statemgr__    = StateManager
    __logstore__    = DomainLogStore
    __context__     = DomainContext
    __revision__    = 0
    __config__      = SimpleNamespace

    _active_session = contextvars.ContextVar('domain_session', default=None)
    _namespaces = set()

    def __init_subclass__(cls):
        if not cls.__dict__.get('__namespace__'):
            cls.__namespace__ = camel_to_lower(cls.__name__)

        if cls.__namespace__ in Domain._namespaces:
            raise ValueError(f'Domain already registered: {cls.__namespace__}')

        for attr, base in (('__aggregate__', Aggregate), ('__statemgr__', StateManager),
                           ('__logstore__', DomainLogStore), ('__context__', DomainContext)):
            if not issubclass(getattr(cls, attr), base):
                raise ValueError(f'Domain [{cls.__namespace__}] has invalid {attr}: {getattr(cls, attr)}')

        Domain._namespaces.add(cls.__namespace__)

        # Subclassing these bases registers the entity with this domain
        class Command(cc.Command):
            __abstract__ = True

            def __init_subclass__(cmd_cls):
                super().__init_subclass__()
                cls.command(cmd_cls)

        class Event(ce.Event):
            __abstract__ = True

            def __init_subclass__(evt_cls):
                super().__init_subclass__()
                cls.event(evt_cls)

        class Message(cm.Message):
            __abstract__ = True

            def __init_subclass__(msg_cls):
                super().__init_subclass__()
                cls.message(msg_cls)

        cls.Command, cls.Event, cls.Message = Command, Event, Message

    def __init__(self, app=None, **config):
        self._config = self.__config__(**config)
        self._logstore = self.__logstore__(self, app)
        self._statemgr = self.__statemgr__(self, app)
        self._locks = KeyedLock()
        self._processors = _handler_table(self._cmd_processors)
        self._dispatchers = _handler_table(self._msg_dispatchers)
        self.register_signals()

    @property
    def domain_name(self):
        return self.__namespace__

    @property
    def statemgr(self):
        return self._statemgr

    @property
    def logstore(self):
        return self._logstore

    @property
    def config(self):
        return self._config

    def cmd_processors(self, bundle):
        try:
            return self._processors[bundle.command]
        except KeyError:
            raise CommandProcessingError('D00.301', f'No command handler provided for [{bundle.command}]')

    def msg_dispatchers(self, bundle):
        return self._dispatchers.get(bundle.msg_key, ())

    def lock(self, *identifiers):
        ''' Serialize all work on the given aggregate root identifiers '''
        return self._locks.acquire(*identifiers)

    def create_command(self, cmd_key, cmd_data, aggroot):
        if not isinstance(aggroot, AggregateRoot):
            aggroot = AggregateRoot(*aggroot)

        cmd_cls = self.lookup_command(cmd_key)
        allowed = cmd_cls.Meta.resources
        if allowed and aggroot.resource not in allowed:
            raise CommandProcessingError(
                'D00.302', f'Command [{cmd_key}] does not allow aggroot of resource [{aggroot.resource}]')

        return cc.CommandBundle(
            domain=self.__namespace__,
            revision=self.__revision__,
            command=cmd_key,
            payload=cmd_cls.Data.create(cmd_data),
            resource=aggroot.resource,
            identifier=aggroot.identifier,
        )

    async def authorize_command(self, session, command):
        return command

    async def invoke_processors(self, session, cmd_bundle, cmd_def):
        aggregate = session.aggregate
        async with aggregate.command_aggregate(session.data, cmd_bundle, cmd_def) as agg_proxy:
            for processor in self.cmd_processors(cmd_bundle):
                result = processor(agg_proxy, self.statemgr, cmd_bundle)

                # A processor is either a coroutine or an async generator
                if inspect.isawaitable(result):
                    particles = [await result]
                else:
                    particles = [p async for p in result]

                for particle in particles:
                    if particle is not None:
                        yield particle

                for evt in aggregate.consume_events():
                    yield evt

    async def run_command(self, session, cmd):
        await self.logstore.add_command(cmd)
        await self.publish(sig.COMMAND_READY, cmd)

        async for particle in self.invoke_processors(session, cmd, self.lookup_command(cmd.command)):
            if isinstance(particle, ce.EventRecord):
                evt = await self.logstore.add_event(particle.set(src_cmd=cmd._id))
                session.events.append(evt)
                await self.publish(sig.EVENT_COMMITED, cmd, event=evt)
                continue

            if isinstance(particle, cm.MessageBundle):
                msg = particle.set(src_cmd=cmd._id)
                await self.logstore.add_message(msg)
                session.messages.append(msg)
                await self.publish(sig.MESSAGE_RECEIVED, cmd, message=msg)
                continue

            raise CommandProcessingError(
                'D00.303', f"Invalid command processor result: [{particle}] while processing: {cmd.command}")

        await self.publish(sig.COMMAND_COMPLETED, cmd)

    @contextmanager
    def session(self, **kwargs):
        current = self._active_session.get()
        assert current is None, f'Context is already set for domain: {current}.'

        token = self._active_session.set(DomainSession(self, **kwargs))
        try:
            yield self
        finally:
            self._active_session.reset(token)

    @property
    def context(self):
        session = self._active_session.get()
        if session is None:
            raise RuntimeError('Domain session is not started yet.')

        return session

    async def process_command(self, *commands):
        ''' Run the commands as one transaction while holding the locks of
            their aggregate roots.

            Events are returned and TRANSACTION_COMMITTED is published only
            after the commit. Messages are dispatched last, once the locks
            are released and without an active session.
        '''
        if not commands:
            logger.warning('No commands provided to process.')
            return tuple()

        session = self.context
        async with self.lock(*(cmd.identifier for cmd in commands)):
            async with self.statemgr.transaction(session), self.logstore.transaction(session):
                await self.logstore.add_context(session.data)

                for cmd in commands:
                    cmd = cmd.set(context=session.id, domain=self.__namespace__, revision=self.__revision__)
                    await self.run_command(session, await self.authorize_command(session, cmd))

                await self.publish(sig.TRANSACTION_COMMITTING, self, context=session)

        events, messages = session.drain()
        await self.publish(sig.TRANSACTION_COMMITTED, self, events=events)
        await self.dispatch_messages(messages)
        return events

    async def dispatch_messages(self, messages):
        token = self._active_session.set(None)
        try:
            for msg_bundle in messages:
                dispatchers = self.msg_dispatchers(msg_bundle)
                if not dispatchers:
                    logger.warning('No dispatcher for message [%s]', msg_bundle.msg_key)

                for dispatcher in dispatchers:
                    await dispatcher(self, msg_bundle)
        finally:
            self._active_session.reset(token)

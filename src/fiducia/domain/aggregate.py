import contextvars

from functools import wraps
from contextlib import asynccontextmanager
from typing import NamedTuple

from fiducia.error import ForbiddenError
from fiducia.data import UUID_TYPE

from . import logger

from .event import EventRecord
from .message import MessageBundle


class AggregateRoot(NamedTuple):
    resource: str
    identifier: UUID_TYPE


def _resource_names(resources):
    if not resources:
        return None

    if isinstance(resources, str):
        return (resources,)

    if isinstance(resources, (list, tuple)):
        return tuple(resources)

    raise ValueError(f"Invalid resource names: {resources}")


def action(evt_key=None, resources=None):
    """
    Mark an aggregate method as an action. The dict it returns becomes the
    data of an `evt_key` event, keyword arguments become the event args.
    `resources` limits the aggregate roots the action may run on.
    """

    allowed = _resource_names(resources)

    def _decorator(func):
        func.__domain_event__ = evt_key

        @wraps(func)
        async def wrapper(self, *args, **evt_args):
            if allowed is not None and self.aggroot.resource not in allowed:
                raise ForbiddenError("D00.101", f'Action is not allowed on resource: {self.aggroot.resource}')

            evt_data = await func(self, *args, **evt_args)

            if evt_key is not None:
                self.create_event(evt_key, evt_args, evt_data)
            elif evt_data is not None:
                logger.warning('Action [%s] returned data without an event key', func.__name__)

            return evt_data

        return wrapper
    return _decorator


class _CommandScope(object):
    __slots__ = ('context', 'command', 'aggroot', 'rootobj', 'events')

    def __init__(self, context, command, aggroot):
        self.context = context
        self.command = command
        self.aggroot = aggroot
        self.rootobj = None
        self.events = []


class Aggregate(object):
    _scope = contextvars.ContextVar('aggregate_scope', default=None)
    _actions = tuple()

    def __init__(self, domain):
        # Only the services actions need, so aggregates stay testable alone
        self.domain_name = domain.domain_name
        self.lookup_event = domain.lookup_event
        self.lookup_message = domain.lookup_message
        self.statemgr = domain.statemgr

    def __init_subclass__(cls):
        cls._actions = tuple(
            name for name in dir(cls)
            if hasattr(getattr(cls, name, None), '__domain_event__')
        )

    @asynccontextmanager
    async def command_aggregate(self, context, command_bundle, command_meta):
        aggroot = AggregateRoot(command_bundle.resource, command_bundle.identifier)
        scope = _CommandScope(context, command_bundle, aggroot)
        token = self._scope.set(scope)

        try:
            if not command_meta.Meta.new_resource:
                scope.rootobj = await self.statemgr.fetch(aggroot.resource, aggroot.identifier)

            yield RestrictedAggregateProxy(self)

            if scope.events:
                raise RuntimeError('All events must be consumed by the command handler.')
        finally:
            self._scope.reset(token)

    @property
    def scope(self):
        scope = self._scope.get()
        if scope is None:
            raise RuntimeError('Aggregate context is not initialized.')

        return scope

    @property
    def context(self):
        return self.scope.context

    @property
    def command(self):
        return self.scope.command

    @property
    def aggroot(self):
        return self.scope.aggroot

    @property
    def rootobj(self):
        return self.scope.rootobj

    def create_event(self, evt_key, evt_args, data):
        evt_class = self.lookup_event(evt_key)
        evt = EventRecord(
            event=evt_key,
            domain=self.domain_name,
            resource=self.aggroot.resource,
            identifier=self.aggroot.identifier,
            actor=self.context.actor,
            timestamp=self.context.timestamp,
            args=evt_args,
            data=None if data is None else evt_class.Data.create(data),
        )

        self.scope.events.append(evt)
        return evt

    def create_message(self, msg_key, data=None, **kwargs):
        msg_cls = self.lookup_message(msg_key)
        return MessageBundle(
            msg_key=msg_key,
            domain=self.domain_name,
            resource=self.aggroot.resource,
            identifier=self.aggroot.identifier,
            data=msg_cls.Data.create(data),
            **kwargs
        )

    async def init_resource(self, resource, data=None, **kwargs):
        record = self.statemgr.create(resource, data, **kwargs)
        await self.statemgr.insert(record)
        self.scope.rootobj = record
        return record

    async def update_rootobj(self, **changes):
        record = await self.statemgr.update(self.rootobj, **changes)
        self.scope.rootobj = record
        return record

    def consume_events(self):
        events = self.scope.events
        while events:
            yield events.pop(0)


class RestrictedAggregateProxy(object):
    ''' What command processors see: the actions, `create_message` and
        read access to the command scope. '''

    def __init__(self, aggregate):
        for action_name in aggregate._actions:
            setattr(self, action_name, getattr(aggregate, action_name))

        self.create_message = aggregate.create_message
        self.get_context = lambda: aggregate.context
        self.get_rootobj = lambda: aggregate.rootobj
        self.get_aggroot = lambda: aggregate.aggroot

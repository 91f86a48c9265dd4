import enum

import blinker

from fiducia.helper import when


class DomainSignal(enum.Enum):
    COMMAND_COMPLETED      = "signal_command_completed"
    COMMAND_READY          = "signal_command_ready"
    EVENT_COMMITED         = "signal_event_commited"
    MESSAGE_RECEIVED       = "signal_message_received"
    TRANSACTION_COMMITTED  = "signal_transaction_committed"
    TRANSACTION_COMMITTING = "signal_transaction_committing"


def _passthrough(func):
    return func


class DomainSignalManager(object):
    ''' Every domain instance owns one blinker signal per `DomainSignal`.

        Receivers declared with `@Domain.subscribe(signal)` are connected to
        each instance of that domain class; `domain.connect` adds a receiver
        to a single instance. Receivers may be plain or async functions.
    '''

    def register_signals(self):
        self._signals = {signal: blinker.Signal(signal.value) for signal in DomainSignal}

        for klass in reversed(type(self).__mro__):
            for signal, receivers in klass.__dict__.get('_signal_subscriptions', {}).items():
                for receiver in receivers:
                    self.connect(signal, receiver)

    @classmethod
    def subscribe(cls, signal):
        def _decorator(func):
            subs = cls.__dict__.get('_signal_subscriptions')
            if subs is None:
                subs = cls._signal_subscriptions = {}

            subs[signal] = subs.get(signal, ()) + (func,)
            return func

        return _decorator

    def connect(self, signal, func):
        self._signals[signal].connect(func, weak=False)
        return func

    async def publish(self, signal, sender, **kwargs):
        # Coroutine receivers are returned unwrapped and awaited here
        replies = self._signals[signal].send(sender, _async_wrapper=_passthrough, **kwargs)
        return [await when(reply) for _, reply in replies]

import enum


class TransferStatus(str, enum.Enum):
    PENDING = 'PENDING'
    ACCEPTED = 'ACCEPTED'
    DECLINED = 'DECLINED'
    EXPIRED = 'EXPIRED'
    CANCELLED = 'CANCELLED'
    COMPLETED = 'COMPLETED'

    @property
    def is_terminal(self):
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    TransferStatus.COMPLETED,
    TransferStatus.DECLINED,
    TransferStatus.EXPIRED,
    TransferStatus.CANCELLED,
})

TRANSITIONS = {
    None: frozenset({TransferStatus.PENDING}),
    TransferStatus.PENDING: frozenset({
        TransferStatus.ACCEPTED,
        TransferStatus.DECLINED,
        TransferStatus.EXPIRED,
        TransferStatus.CANCELLED,
    }),
    TransferStatus.ACCEPTED: frozenset({TransferStatus.COMPLETED}),
}

# Status reached by each event of the transfer log. Events that are not
# listed (e.g. refunds) do not change the status.
EVENT_STATUS = {
    'transfer-initiated': TransferStatus.PENDING,
    'transfer-accepted': TransferStatus.ACCEPTED,
    'transfer-declined': TransferStatus.DECLINED,
    'transfer-cancelled': TransferStatus.CANCELLED,
    'transfer-expired': TransferStatus.EXPIRED,
    'transfer-completed': TransferStatus.COMPLETED,
}


def can_transition(current, target):
    return target in TRANSITIONS.get(current, frozenset())


def replay_status(events):
    ''' Fold an ordered sequence of event records into the resulting status.
        Raises ValueError on a sequence no transfer could have produced. '''
    status = None
    expected = 1
    for evt in events:
        if evt.sequence is not None:
            if evt.sequence != expected:
                raise ValueError(f'Event log has a gap: expected #{expected}, got #{evt.sequence}')
            expected += 1

        target = EVENT_STATUS.get(evt.event)
        if target is None:
            continue

        if not can_transition(status, target):
            raise ValueError(f'Invalid transition in event log: {status} => {target} [{evt.event}]')

        status = target

    return status

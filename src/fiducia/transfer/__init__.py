from ._meta import config, logger
from .exceptions import (
    ConversionRejected,
    CurrencyMismatch,
    InsufficientFunds,
    InvalidState,
    InvalidTransferRequest,
    LedgerConflict,
    LedgerTimeout,
    LedgerUnavailable,
    NotYetExpired,
    OracleUnavailable,
    ReconciliationRequired,
    ReservationFailed,
    TransferExpired,
    TransferNotFound,
    Unauthorized,
)
from .money import (
    AccountAddress,
    Currency,
    CurrencyKind,
    DestinationInstrument,
    InstrumentKind,
    MultiCurrencyAmount,
)
from .status import TransferStatus, TERMINAL_STATUSES, replay_status
from .datadef import RefundReceipt, RefundStatus, TransferRecord, TransferStateManager
from .ledger import InMemoryLedger, Ledger, LedgerOperation, Posting
from .payout import InMemoryPayoutRail, Payout, PayoutRail
from .conversion import ConversionPolicy, ConversionResult, RateOracle, RateQuote, StaticRateOracle
from .escrow import EscrowAccountingAdapter, EscrowAudit, ReconciliationItem
from .sink import EventSink, InMemoryEventSink, SinkEvent
from .domain import TransferDomain
from . import command, event, message  # noqa: F401
from .refund import RefundHandler
from .service import TransferService
from .sweeper import ExpirySweeper, SweepResult


__all__ = (
    "AccountAddress",
    "config",
    "ConversionPolicy",
    "ConversionRejected",
    "ConversionResult",
    "Currency",
    "CurrencyKind",
    "CurrencyMismatch",
    "DestinationInstrument",
    "EscrowAccountingAdapter",
    "EscrowAudit",
    "EventSink",
    "ExpirySweeper",
    "InMemoryEventSink",
    "InMemoryLedger",
    "InMemoryPayoutRail",
    "InstrumentKind",
    "InsufficientFunds",
    "InvalidState",
    "InvalidTransferRequest",
    "Ledger",
    "LedgerConflict",
    "LedgerOperation",
    "LedgerTimeout",
    "LedgerUnavailable",
    "logger",
    "MultiCurrencyAmount",
    "NotYetExpired",
    "OracleUnavailable",
    "Payout",
    "PayoutRail",
    "Posting",
    "RateOracle",
    "RateQuote",
    "ReconciliationItem",
    "ReconciliationRequired",
    "RefundHandler",
    "RefundReceipt",
    "RefundStatus",
    "replay_status",
    "ReservationFailed",
    "SinkEvent",
    "StaticRateOracle",
    "SweepResult",
    "TERMINAL_STATUSES",
    "TransferDomain",
    "TransferExpired",
    "TransferNotFound",
    "TransferRecord",
    "TransferService",
    "TransferStateManager",
    "TransferStatus",
    "Unauthorized",
)

from fiducia.error import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    GatewayTimeoutError,
    InternalServerError,
    NotFoundError,
    PreconditionFailedError,
    ServiceUnavailableError,
    UnprocessableError,
)


# Domain errors: caller-correctable, surfaced immediately

class InvalidTransferRequest(BadRequestError):
    errcode = "T00.400"


class CurrencyMismatch(BadRequestError):
    errcode = "T00.401"


class Unauthorized(ForbiddenError):
    errcode = "T00.403"


class TransferNotFound(NotFoundError):
    errcode = "T00.404"


class InvalidState(ConflictError):
    errcode = "T00.409"


class NotYetExpired(PreconditionFailedError):
    errcode = "T00.412"


class TransferExpired(UnprocessableError):
    errcode = "T00.421"


class ConversionRejected(UnprocessableError):
    errcode = "T00.422"


class ReservationFailed(UnprocessableError):
    errcode = "T00.423"


# Errors raised by the external collaborators

class InsufficientFunds(UnprocessableError):
    errcode = "T00.424"


class LedgerConflict(ConflictError):
    ''' A replay key was reused for a different instruction '''
    errcode = "T00.410"


class LedgerUnavailable(ServiceUnavailableError):
    ''' Transient failure, the instruction did not take effect '''
    errcode = "T00.503"


class LedgerTimeout(GatewayTimeoutError):
    ''' Ambiguous failure, the instruction may or may not have taken effect '''
    errcode = "T00.504"


class OracleUnavailable(ServiceUnavailableError):
    errcode = "T00.513"


# Retries exhausted, flagged for manual reconciliation

class ReconciliationRequired(InternalServerError):
    errcode = "T00.500"

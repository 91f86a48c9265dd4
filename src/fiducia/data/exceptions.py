from fiducia.error import (  # noqa
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    UnprocessableError
)


class StateCommittedError(UnprocessableError):
    pass


class ItemNotFoundError(NotFoundError):
    pass


class NoItemModifiedError(NotFoundError):
    pass


class DuplicateItemError(ConflictError):
    pass


class EtagMismatchError(PreconditionFailedError):
    pass

from fiducia.error import BadRequestError, InternalServerError


class DomainEntityError(BadRequestError):
    """Domain entity validation error"""
    errcode = "D00.001"


class DomainCommandValidationError(BadRequestError):
    """Domain command validation error"""
    errcode = "D00.003"


class CommandProcessingError(InternalServerError):
    """Command processing error"""
    errcode = "D00.004"


class MessageDispatchError(InternalServerError):
    """Message dispatching error"""
    errcode = "D00.005"

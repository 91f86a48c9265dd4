from fiducia import config, logger


DEBUG_APP_EXCEPTION = config.DEBUG_APP_EXCEPTION


class FiduciaException(Exception):
    status_code = 500
    label = "Internal Error"
    errcode = "A00.000"

    def __init__(self, errcode, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.errcode = errcode

        DEBUG_APP_EXCEPTION and logger.exception(message)

    def __str__(self):
        if self.details is None:
            return f"{self.errcode} [{self.status_code}] >> {self.message}"

        return f"{self.errcode} [{self.status_code}] >> {self.message} >> {self.details}"

    @property
    def content(self):
        if not self.details:
            return {"errcode": self.errcode, "message": self.message}

        return {"errcode": self.errcode, "message": self.message, "details": self.details}


class NotFoundError(FiduciaException):
    label = "Not Found"
    status_code = 404
    errcode = "A00.404"


class PreconditionFailedError(FiduciaException):
    label = "Precondition Failed"
    status_code = 412
    errcode = "A00.412"


class BadRequestError(FiduciaException):
    label = "Bad Request"
    status_code = 400
    errcode = "A00.400"


class ForbiddenError(FiduciaException):
    label = "Forbidden"
    status_code = 403
    errcode = "A00.403"


class ConflictError(FiduciaException):
    label = "Conflict"
    status_code = 409
    errcode = "A00.409"


class UnprocessableError(FiduciaException):
    label = "Unprocessable Entity"
    status_code = 422
    errcode = "A00.422"


class InternalServerError(FiduciaException):
    label = "Internal Server Error"
    status_code = 500
    errcode = "A00.500"


class ServiceUnavailableError(FiduciaException):
    label = "Service Unavailable"
    status_code = 503
    errcode = "A00.503"


class GatewayTimeoutError(FiduciaException):
    label = "Gateway Timeout"
    status_code = 504
    errcode = "A00.504"

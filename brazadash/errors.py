class BrazaDashError(Exception):
    """Base error; ``status_code`` is the HTTP status returned to the caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BrazaDashError):
    status_code = 400


class InvalidAmount(ValidationError):
    pass


class BusinessRuleError(BrazaDashError):
    status_code = 400


class PaymentNotCompleted(BrazaDashError):
    status_code = 400

    def __init__(self, message: str = "Payment not completed"):
        super().__init__(message)


class Forbidden(BrazaDashError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFound(BrazaDashError):
    status_code = 404


class CaptureFailed(BrazaDashError):
    # Never retried automatically: a second capture of an ambiguous failure
    # needs an operator decision.
    status_code = 409


class UpstreamError(BrazaDashError):
    status_code = 500

"""
Error taxonomy for the relay. Every per-request error carries the HTTP status
it is reported with; StartupFailure is fatal and never reaches a client.
"""


class RelayError(Exception):
    status_code = 500
    reason = "error"
    default_detail = "Internal error"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationFailure(RelayError):
    status_code = 401
    reason = "auth"
    default_detail = "Invalid token"


class EmptyPayload(RelayError):
    status_code = 400
    reason = "empty"
    default_detail = "Empty payload"


class PayloadTooLarge(RelayError):
    status_code = 413
    reason = "too_large"
    default_detail = "Payload too large"


class BodyReadFailure(RelayError):
    status_code = 500
    reason = "body_read"
    default_detail = "Failed to read request body"


class ForwardFailure(RelayError):
    status_code = 500
    reason = "forward"
    default_detail = "Failed to forward payload"


class StartupFailure(Exception):
    """Fatal: bad TLS material, unusable listen address, or unreachable destination."""

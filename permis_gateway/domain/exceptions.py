"""Domain-specific exceptions"""

from typing import Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ClientInputError(DomainException):
    """Request cannot be served as sent; never retried automatically"""

    pass


class UnknownOfferError(ClientInputError):
    """Offer id is not in the catalog for the requested payment mode"""

    def __init__(self, offer_id: str):
        super().__init__(f"Unknown offer: {offer_id}")
        self.offer_id = offer_id


class InvalidCycleCountError(ClientInputError):
    """Installment cycle count outside the supported set"""

    def __init__(self, cycles: object):
        super().__init__(f"cycles must be 2, 3 or 4 (got {cycles!r})")
        self.cycles = cycles


class InvalidModeError(ClientInputError):
    """Payment mode does not match the endpoint it was sent to"""

    pass


class InvalidPlanMetadataError(ClientInputError):
    """Plan metadata attached to a processor object is malformed"""

    pass


class AuthenticationError(DomainException):
    """Inbound processor request could not be authenticated"""

    pass


class InvalidSignatureError(AuthenticationError):
    """Webhook signature does not match the configured secret"""

    pass


class InvalidPayloadError(DomainException):
    """Webhook body is not a decodable event"""

    pass


class PaymentProviderError(DomainException):
    """Payment processor API returned an error or is unavailable"""

    def __init__(self, message: str, code: Optional[str] = None, type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.type = type


class DownstreamMutationError(PaymentProviderError):
    """Post-webhook cancellation scheduling failed after all retries"""

    pass

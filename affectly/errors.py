"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status the Flask error handler answers with.
"""

SUPPORT_NOTICE = "Please contact support if payment was deducted."


class AffectlyError(Exception):
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {"error": self.message, "type": self.__class__.__name__}


class ValidationError(AffectlyError):
    """Invalid request."""
    status_code = 400


class NotFound(AffectlyError):
    """Not found."""
    status_code = 404


class Conflict(AffectlyError):
    """Already exists."""
    status_code = 409


class QuotaExceeded(AffectlyError):
    """Daily entry limit reached. Upgrade to Premium for unlimited entries."""
    status_code = 429


class FeatureLocked(AffectlyError):
    """This feature is available on Premium only."""
    status_code = 403


class StoreError(AffectlyError):
    """Could not save your changes. Please try again."""
    status_code = 503


class ClassifierError(AffectlyError):
    """Sentiment analysis failed."""
    status_code = 502


class PaymentInitError(AffectlyError):
    """Failed to initialize payment. Please try again."""
    status_code = 502


class PaymentVerificationError(AffectlyError):
    """Payment verification failed."""
    status_code = 402

    def to_dict(self):
        data = super().to_dict()
        data["support"] = SUPPORT_NOTICE
        return data


class UserNotFoundError(PaymentVerificationError):
    """No account matches the paying customer."""
    status_code = 404


class GatewayError(Exception):
    """Raised by the gateway client; mapped to a payment error by the workflow."""

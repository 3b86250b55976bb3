# core/errors.py
"""
Exception hierarchy for subscription handling and mail transport
"""


class SubscriptionError(Exception):
    """Base exception for subscription operations"""
    status_code = 500


class ValidationError(SubscriptionError):
    """Inbound email is missing or malformed"""
    status_code = 400

    MISSING = 'missing'
    MALFORMED = 'malformed'

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Email validation failed: {reason}")


class DuplicateError(SubscriptionError):
    """Email is already stored"""
    status_code = 400


class StorageError(SubscriptionError):
    """Unexpected persistence failure"""
    status_code = 500


class MailSendError(SubscriptionError):
    """Outbound message could not be delivered to the SMTP server"""
    pass


class TransportError(Exception):
    """Base exception for transport bootstrap"""
    pass


class SandboxProvisioningError(TransportError):
    """Test account could not be created"""
    pass


class TransportAlreadyAssignedError(TransportError):
    """The transport handle was already resolved"""
    pass

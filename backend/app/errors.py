"""
Error taxonomy for the donation flow.

Each error carries the HTTP status it maps to and the message that is safe to
show a client. Anything not listed here is reported as a generic 500.
"""

SERVER_ERROR = 'Server error'


class DonationError(Exception):
    status_code = 500
    public_message = SERVER_ERROR

    def __init__(self, message: str = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    @property
    def detail(self) -> str:
        return self.public_message


class ValidationError(DonationError):
    status_code = 400
    public_message = 'Missing required fields: name, amount, method'

    @property
    def detail(self) -> str:
        return self.message


class UnsupportedMethodError(DonationError):
    status_code = 400
    public_message = 'Unsupported payment method'


class ProviderNotConfiguredError(DonationError):
    """The operator has not supplied credentials for a provider."""
    status_code = 500

    def __init__(self, provider: str):
        super().__init__(f'{provider} not configured')
        self.provider = provider

    @property
    def detail(self) -> str:
        return self.message


class ProviderCallError(DonationError):
    """Outbound provider call raised or returned something unusable."""
    status_code = 500


class PersistenceError(DonationError):
    status_code = 500

"""Error types shared by the invoicing modules."""


class InvoicerError(Exception):
    """Base error. The CLI shows `message` to the user and returns to the menu."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InvoicerError, ValueError):
    """Malformed or out-of-range user input."""


class ConfigurationMissing(InvoicerError):
    """Settings absent or incomplete."""


class PersistenceNotFound(InvoicerError, LookupError):
    """A record looked up by id does not exist."""


class DeliveryFailure(InvoicerError):
    """Email could not be sent."""


class RenderFailure(InvoicerError):
    """The invoice was saved but its PDF could not be written."""

class BridgeError(Exception):
    """Base class for errors that should surface to the webhook sender."""


class PayloadParseError(BridgeError):
    """The payload is not valid JSON or lacks a field the event type needs."""


class DeliveryError(BridgeError):
    """The chat webhook rejected the message or could not be reached."""

from enum import Enum
from typing import Optional, Protocol, Union

from ..signature import verify
from ..types.message import OutboundMessage
from .classifier import EventClassifier

class MessageSink(Protocol):
    async def send(self, message: OutboundMessage) -> None:
        ...

class HandleOutcome(str, Enum):
    REJECTED = "rejected"
    IGNORED = "ignored"
    DELIVERED = "delivered"

class WebhookHandler:
    def __init__(self, secret: Optional[str], classifier: EventClassifier, sink: MessageSink):
        self._secret = secret
        self.classifier = classifier
        self.sink = sink

    @property
    def tracker(self):
        return self.classifier.tracker

    async def handle(
        self,
        event_type: Optional[str],
        raw_body: Union[str, bytes],
        signature: Optional[str] = None,
        channel: Optional[str] = None,
    ) -> HandleOutcome:
        """
        Verify, classify and deliver one webhook.

        PayloadParseError and DeliveryError propagate to the caller; tracker
        changes made before a failed delivery are kept.
        """
        print(f"[webhook] received event={event_type} channel={channel}")

        if signature is None:
            print("[webhook] no signature provided, rejecting")
            return HandleOutcome.REJECTED
        if not verify(self._secret, raw_body, signature):
            print("[webhook] invalid signature, rejecting")
            return HandleOutcome.REJECTED

        message = self.classifier.classify(event_type, raw_body, channel)
        if message is None:
            return HandleOutcome.IGNORED

        await self.sink.send(message)
        return HandleOutcome.DELIVERED

from typing import Optional

import httpx

from .errors import DeliveryError
from .types.message import DEFAULT_ICON_EMOJI, DEFAULT_USERNAME, OutboundMessage

class ChatClient:
    """Posts messages to a Slack-compatible incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        username: str = DEFAULT_USERNAME,
        icon_emoji: str = DEFAULT_ICON_EMOJI,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._webhook_url = webhook_url
        self._username = username
        self._icon_emoji = icon_emoji
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def send(self, message: OutboundMessage) -> None:
        first_line = message.text.partition("\n")[0]
        print(f"[chat] sending to channel={message.channel or '-'}: {first_line}")
        try:
            resp = await self._client.post(self._webhook_url, json=message.to_payload(self._username, self._icon_emoji))
        except httpx.HTTPError as e:
            print(f"[chat] delivery error: {type(e).__name__}")
            raise DeliveryError(f"could not reach chat webhook: {type(e).__name__}") from e

        if not resp.is_success:
            print(f"[chat] delivery failed status={resp.status_code}")
            raise DeliveryError(f"chat webhook responded {resp.status_code}: {resp.text[:200]}")
        print("[chat] message delivered")

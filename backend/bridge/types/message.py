from dataclasses import dataclass
from typing import Any, Dict, Optional

DEFAULT_USERNAME = "bottie"
DEFAULT_ICON_EMOJI = ":rocket:"

@dataclass(frozen=True)
class OutboundMessage:
    text: str
    channel: Optional[str] = None
    username: Optional[str] = None
    icon_emoji: Optional[str] = None
    icon_url: Optional[str] = None

    def to_payload(
        self,
        default_username: str = DEFAULT_USERNAME,
        default_icon_emoji: str = DEFAULT_ICON_EMOJI,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "text": self.text,
            "username": self.username or default_username,
            "icon_emoji": self.icon_emoji or default_icon_emoji,
        }
        # unset optional fields are left out of the body
        if self.icon_url:
            payload["icon_url"] = self.icon_url
        if self.channel:
            payload["channel"] = self.channel
        return payload

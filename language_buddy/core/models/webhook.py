"""
Inbound webhook and API request models.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict


class WebhookText(BaseModel):
    """Text part of a WhatsApp message."""

    model_config = ConfigDict(extra="ignore")

    body: str = ""


class WebhookMessage(BaseModel):
    """A single inbound WhatsApp message."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_: str = Field(alias="from")
    id: Optional[str] = None
    type: str = "text"
    text: Optional[WebhookText] = None
    timestamp: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.type == "text" and self.text is not None

    @classmethod
    def from_payload(cls, body: Dict[str, Any]) -> Optional["WebhookMessage"]:
        """Extract the first message from a Cloud API webhook payload."""
        try:
            value = body["entry"][0]["changes"][0]["value"]
            raw = value["messages"][0]
        except (KeyError, IndexError, TypeError):
            return None
        if not isinstance(raw, dict) or not raw.get("from"):
            return None
        return cls.model_validate(raw)


class InitiateRequest(BaseModel):
    """Body of POST /initiate."""

    model_config = ConfigDict(extra="ignore")

    phone: Optional[str] = None

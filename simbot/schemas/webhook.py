"""WhatsApp Cloud API webhook payload (only the parts the bot reads)."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WhatsAppModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WhatsAppText(WhatsAppModel):
    body: str = ""


class WhatsAppMessage(WhatsAppModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_: str = Field(alias="from")
    id: Optional[str] = None
    timestamp: Optional[str] = None
    type: str = "text"
    text: Optional[WhatsAppText] = None


class WhatsAppMetadata(WhatsAppModel):
    phone_number_id: Optional[str] = None
    display_phone_number: Optional[str] = None


class WhatsAppValue(WhatsAppModel):
    messaging_product: Optional[str] = None
    metadata: Optional[WhatsAppMetadata] = None
    messages: List[WhatsAppMessage] = []


class WhatsAppChange(WhatsAppModel):
    field: Optional[str] = None
    value: WhatsAppValue


class WhatsAppEntry(WhatsAppModel):
    id: Optional[str] = None
    changes: List[WhatsAppChange] = []


class WhatsAppWebhook(WhatsAppModel):
    object: Optional[str] = None
    entry: List[WhatsAppEntry] = []


class WhatsAppResponse(BaseModel):
    status: str
    message: str
    buffered_messages: int = 0

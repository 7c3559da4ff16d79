# wa_admin/schemas/message.py
"""
Pydantic schemas for inbox records and the outbound send API.
JSON keys are camelCase to match the admin front-end.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any, List, Literal

Direction = Literal["inbound", "outbound", "status"]


# ────────────────────────────────────────────
# Inbox
# ────────────────────────────────────────────

class InboxItem(BaseModel):
    """A message, send or status event kept in the in-memory inbox"""
    id: Optional[str] = Field(None, description="WhatsApp message id (wamid)")
    direction: Direction
    timestamp: int = Field(..., description="Milliseconds since epoch")
    from_: Optional[str] = Field(None, alias="from", description="Sender wa_id")
    to: Optional[str] = Field(None, description="Recipient wa_id")
    name: Optional[str] = Field(None, description="Contact display name")
    type: str = Field("text", description="text, image, audio, video, document, button, interactive, template, status")
    text: Optional[str] = None
    media_id: Optional[str] = Field(None, alias="mediaId")
    media_type: Optional[str] = Field(None, alias="mediaType")
    file_name: Optional[str] = Field(None, alias="fileName")
    raw: Optional[Any] = None

    class Config:
        populate_by_name = True
        frozen = True

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class InboxPage(BaseModel):
    total: int
    items: List[Dict[str, Any]]


class DebugPushRequest(BaseModel):
    """Synthetic inbound message for local testing"""
    from_: str = Field(..., alias="from", min_length=1)
    text: str = Field("Test message")
    name: Optional[str] = None
    timestamp: Optional[int] = None

    class Config:
        populate_by_name = True


# ────────────────────────────────────────────
# Outbound send
# ────────────────────────────────────────────

class SendMessageRequest(BaseModel):
    """
    Body of the outbound send endpoint.

    ``to`` is optional at the schema level so a missing destination is
    reported as a plain 400 rather than a validation error.
    """
    to: Optional[str] = Field(None, description="Destination wa_id, digits without +")
    text: Optional[str] = Field(None, max_length=4096)
    force_template: Optional[bool] = Field(None, alias="forceTemplate")
    template_name: Optional[str] = Field(None, alias="templateName")
    language_code: Optional[str] = Field(None, alias="languageCode")
    variables: List[str] = Field(default_factory=list)
    ensure_session: Optional[bool] = Field(None, alias="ensureSession")
    auto_session: Optional[bool] = Field(None, alias="autoSession")
    session_template: Optional[str] = Field(None, alias="sessionTemplate")
    session_language: Optional[str] = Field(None, alias="sessionLanguage")
    reply_to: Optional[str] = Field(None, alias="replyTo")

    class Config:
        populate_by_name = True

    @field_validator('to')
    @classmethod
    def clean_to(cls, v):
        """Strip '+', spaces and dashes from the destination"""
        if v is None:
            return v
        clean = v.replace('+', '').replace(' ', '').replace('-', '')
        return clean or None

    @property
    def uses_explicit_template(self) -> bool:
        if self.force_template is not None:
            return bool(self.force_template)
        return bool(self.template_name)


class SendMessageResponse(BaseModel):
    success: bool = True
    step: str
    used: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    template_opened: Optional[Dict[str, Any]] = Field(None, alias="templateOpened")
    text_message: Optional[Dict[str, Any]] = Field(None, alias="textMessage")

    class Config:
        populate_by_name = True

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

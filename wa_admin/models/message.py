# wa_admin/models/message.py
"""
Durable mirror of WhatsApp traffic (inbound, outbound and status records).
"""
from sqlalchemy import Column, String, Text, JSON, BigInteger, Index
from wa_admin.models.base import BaseModel


class WaMessage(BaseModel):
    """Best-effort record of WhatsApp messages, keyed by contact wa_id"""
    __tablename__ = "wa_messages"

    meta_message_id = Column(Text, unique=True, nullable=True)
    waid = Column(String(32), nullable=False)
    name = Column(Text, nullable=True)
    direction = Column(String(16), nullable=False)  # 'inbound', 'outbound' or 'status'
    msg_type = Column(String(32), nullable=False)
    body = Column(Text, nullable=True)
    ts_ms = Column(BigInteger, nullable=False)
    raw = Column(JSON, nullable=True)
    media_id = Column(Text, nullable=True)
    media_type = Column(Text, nullable=True)
    file_name = Column(Text, nullable=True)

    __table_args__ = (
        Index("wa_messages_waid_ts_idx", "waid", "ts_ms"),
    )

    def __repr__(self):
        return f"<WaMessage {self.meta_message_id} {self.direction} {self.waid}>"

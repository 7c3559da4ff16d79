# wa_admin/db/base.py
"""Import all models so metadata.create_all sees them"""
from wa_admin.models.base import Base

from wa_admin.models.message import WaMessage

__all__ = ["Base", "WaMessage"]

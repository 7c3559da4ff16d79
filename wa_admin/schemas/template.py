# wa_admin/schemas/template.py
"""
Pydantic schemas for WhatsApp message templates as shown to the admin UI.
"""
from pydantic import BaseModel, Field
from typing import List, Literal


class UiTemplate(BaseModel):
    """Simplified template entry for the send form"""
    name: str
    label: str = Field(..., description="Human readable name (underscores replaced by spaces)")
    language: Literal["es", "en"]
    lang_code: str = Field(..., alias="langCode", description="Exact Meta language code, use it when sending")
    body: str = ""
    example: List[str] = Field(default_factory=list)
    status: str

    class Config:
        populate_by_name = True


class TemplateListResponse(BaseModel):
    templates: List[UiTemplate]

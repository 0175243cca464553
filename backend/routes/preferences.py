"""Preference Routes - App preferences, theme and the customer form draft."""
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from typing import Optional

from models import CustomerType, Theme
from services.preference_store import form_draft_service, preferences_service

router = APIRouter(prefix="/api", tags=["preferences"])


class UpdatePreferencesRequest(BaseModel):
    items_per_page: Optional[int] = None
    default_customer_type: Optional[CustomerType] = None
    show_welcome_message: Optional[bool] = None
    theme: Optional[Theme] = None


class SaveDraftRequest(BaseModel):
    name: str = ""
    customer_type: CustomerType = CustomerType.ORG


def _preferences_response():
    theme = preferences_service.get_theme()
    return {
        "preferences": preferences_service.get_preferences().model_dump(mode="json"),
        "theme": theme.value if theme else None,
    }


@router.get("/preferences")
async def get_preferences():
    return _preferences_response()


@router.patch("/preferences")
async def update_preferences(request: UpdatePreferencesRequest):
    updates = request.model_dump(exclude_none=True, mode="json")
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates provided")

    theme = updates.pop("theme", None)
    if theme:
        preferences_service.set_theme(theme)
    if updates:
        preferences_service.update_preferences(updates)
    return _preferences_response()


@router.get("/drafts/customer")
async def get_customer_draft():
    draft = form_draft_service.load_draft()
    return {"draft": draft.model_dump(mode="json") if draft else None}


@router.put("/drafts/customer")
async def save_customer_draft(request: SaveDraftRequest):
    draft = form_draft_service.save_draft(request.name, request.customer_type)
    return {"draft": draft.model_dump(mode="json")}


@router.delete("/drafts/customer")
async def clear_customer_draft():
    form_draft_service.clear_draft()
    return {"success": True}

"""Client Routes - Subscription holders under sub-organizations.

Endpoints:
- GET /api/clients?customer_id= - Clients of a sub-org
- POST /api/clients - Create one client
- POST /api/clients/batch - Create many clients with generated names
- POST /api/clients/{client_id}/pause - Pause subscription
- POST /api/clients/{client_id}/resume - Resume subscription
"""
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from typing import Optional
import logging

from models import Client, RecurringInterval, SubscriptionAction
from routes.customers import webhook_http_error
from services.client_service import (
    MAX_BATCH_SIZE,
    ClientValidationError,
    client_service,
    stripe_dashboard_url,
)
from services.customer_service import customer_service
from services.webhook_client import WebhookRequestError
from utils.webhook_config import WebhookNotConfiguredError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/clients", tags=["clients"])


class CreateClientRequest(BaseModel):
    customer_id: str
    name: str
    recurring_interval: RecurringInterval = RecurringInterval.MONTH
    recurring_quantity: int = Field(default=1, ge=1)


class BatchCreateClientsRequest(BaseModel):
    customer_id: str
    count: int = Field(default=10, ge=1, le=MAX_BATCH_SIZE)
    recurring_interval: RecurringInterval = RecurringInterval.MONTH
    recurring_quantity: int = Field(default=1, ge=1)


class SubscriptionActionRequest(BaseModel):
    customer_id: str
    stripe_subscription_id: Optional[str] = None


async def _target_row(customer_id: str):
    await customer_service.ensure_loaded()
    row = customer_service.find_row(customer_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sub-organization not found")
    return row


@router.get("")
async def list_clients(customer_id: str = ""):
    try:
        clients = await client_service.fetch_clients(customer_id)
    except ClientValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (WebhookNotConfiguredError, WebhookRequestError) as e:
        logger.error(f"Error fetching clients: {e}")
        raise webhook_http_error(e)

    return {
        "clients": [
            {**c.model_dump(mode="json"), "stripe_dashboard_url": stripe_dashboard_url(c)}
            for c in clients
        ],
        "total": len(clients),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(request: CreateClientRequest):
    row = await _target_row(request.customer_id)
    try:
        payload = await client_service.create_client(
            row,
            request.name,
            recurring_interval=request.recurring_interval,
            recurring_quantity=request.recurring_quantity,
        )
    except (WebhookNotConfiguredError, WebhookRequestError) as e:
        raise webhook_http_error(e)
    except ClientValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "client": payload}


@router.post("/batch")
async def batch_create_clients(request: BatchCreateClientsRequest):
    row = await _target_row(request.customer_id)
    try:
        result = await client_service.batch_create_clients(
            row,
            request.count,
            recurring_interval=request.recurring_interval,
            recurring_quantity=request.recurring_quantity,
        )
    except WebhookNotConfiguredError as e:
        raise webhook_http_error(e)
    except ClientValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {**result.model_dump(), "message": result.message}


async def _subscription_action(client_id: str, request: SubscriptionActionRequest, action: SubscriptionAction):
    client = Client(
        id=client_id,
        customer_id=request.customer_id,
        stripe_subscription_id=request.stripe_subscription_id,
    )
    try:
        await client_service.update_subscription(request.customer_id, client, action)
    except (WebhookNotConfiguredError, WebhookRequestError) as e:
        logger.error(f"Error during subscription {action.value}: {e}")
        raise webhook_http_error(e)
    return {"success": True, "client_id": client_id, "action": action.value}


@router.post("/{client_id}/pause")
async def pause_subscription(client_id: str, request: SubscriptionActionRequest):
    return await _subscription_action(client_id, request, SubscriptionAction.PAUSE)


@router.post("/{client_id}/resume")
async def resume_subscription(client_id: str, request: SubscriptionActionRequest):
    return await _subscription_action(client_id, request, SubscriptionAction.RESUME)

"""Customer Routes - Organizations and sub-organizations.

Endpoints:
- GET /api/customers - Current customers (+ rejected record summary)
- POST /api/customers/refresh - Reload from the workflow backend
- POST /api/customers - Create customer
- GET /api/customers/flattened - Orgs followed by their sub-orgs
- GET /api/customers/search - Autocomplete suggestions
- GET /api/customers/{id} - Customer details
- PATCH /api/customers/{id} - Update customer
- DELETE /api/customers/{id} - Delete customer
- GET /api/stats - Dashboard totals
"""
from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
import logging

from models import CustomerType
from services.customer_hierarchy import MAX_SUGGESTIONS, filter_customers, search_suggestions
from services.customer_service import (
    CustomerNotFoundError,
    InvalidCustomerResponseError,
    customer_service,
)
from services.customer_normalizer import CustomerNormalizationError
from services.webhook_client import WebhookRequestError
from utils.webhook_config import WebhookNotConfiguredError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/customers", tags=["customers"])
stats_router = APIRouter(prefix="/api/stats", tags=["stats"])


class CreateCustomerRequest(BaseModel):
    name: str
    customer_type: CustomerType = CustomerType.ORG
    parent_org_id: Optional[str] = None


class UpdateCustomerRequest(BaseModel):
    name: Optional[str] = None
    customer_type: Optional[CustomerType] = None
    client_count: Optional[int] = None
    email: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    suborgs: Optional[List[Dict[str, Any]]] = None


def webhook_http_error(e: Exception) -> HTTPException:
    """Map webhook failures onto gateway errors."""
    if isinstance(e, WebhookNotConfiguredError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


def _customers_response():
    return {
        "customers": [c.model_dump(mode="json") for c in customer_service.customers],
        "total": len(customer_service.customers),
        "rejected": [
            {"index": r.index, "reason": r.reason} for r in customer_service.last_rejections
        ],
        "error": customer_service.error,
    }


@router.get("")
async def list_customers(q: Optional[str] = None):
    """List customers, optionally filtered by org or sub-org name."""
    await customer_service.ensure_loaded()
    response = _customers_response()
    if q:
        matches = filter_customers(customer_service.customers, q)
        response["customers"] = [c.model_dump(mode="json") for c in matches]
        response["total"] = len(matches)
    return response


@router.post("/refresh")
async def refresh_customers():
    await customer_service.refresh_customers()
    return _customers_response()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(request: CreateCustomerRequest):
    """Create a customer via the workflow backend."""
    if not request.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name is required")
    try:
        customer = await customer_service.add_customer(
            name=request.name.strip(),
            customer_type=request.customer_type,
            parent_org_id=request.parent_org_id,
        )
    except (WebhookNotConfiguredError, WebhookRequestError, InvalidCustomerResponseError) as e:
        logger.error(f"Create customer failed: {e}")
        raise webhook_http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"success": True, "customer": customer.model_dump(mode="json")}


@router.get("/flattened")
async def get_flattened_customers(sub_orgs_only: bool = False):
    """Orgs each followed by their sub-orgs; sub_orgs_only for client pickers."""
    await customer_service.ensure_loaded()
    rows = customer_service.flattened(sub_orgs=sub_orgs_only)
    return {"rows": [row.model_dump(mode="json") for row in rows], "total": len(rows)}


@router.get("/search")
async def search_customers(q: str = "", limit: int = MAX_SUGGESTIONS, sub_orgs_only: bool = False):
    await customer_service.ensure_loaded()
    rows = customer_service.flattened(sub_orgs=sub_orgs_only)
    suggestions = search_suggestions(rows, q, limit=max(1, limit))
    return {"suggestions": [row.model_dump(mode="json") for row in suggestions]}


@router.get("/{customer_id}")
async def get_customer(customer_id: str):
    await customer_service.ensure_loaded()
    customer = customer_service.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return {"customer": customer.model_dump(mode="json")}


@router.patch("/{customer_id}")
async def update_customer(customer_id: str, request: UpdateCustomerRequest):
    updates = request.model_dump(exclude_none=True, mode="json")
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates provided")
    await customer_service.ensure_loaded()
    try:
        customer = await customer_service.update_customer(customer_id, updates)
    except CustomerNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    except CustomerNormalizationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.reason)
    except (WebhookNotConfiguredError, WebhookRequestError) as e:
        raise webhook_http_error(e)
    return {"success": True, "customer": customer.model_dump(mode="json")}


@router.delete("/{customer_id}")
async def delete_customer(customer_id: str):
    await customer_service.ensure_loaded()
    try:
        await customer_service.delete_customer(customer_id)
    except CustomerNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    except (WebhookNotConfiguredError, WebhookRequestError) as e:
        raise webhook_http_error(e)
    return {"success": True}


@stats_router.get("")
async def get_overall_stats():
    stats = await customer_service.get_overall_stats()
    return stats.model_dump()

"""Customer Service

Holds the current customer list fetched from the workflow backend.
Customers are replaced wholesale on every refresh; there is no merge.
"""
import logging
from typing import Any, Dict, List, Optional

from models import (
    Customer,
    CustomerType,
    FlattenedRow,
    NormalizationRejection,
    OverallStats,
)
from services.customer_hierarchy import flatten_customers, organizations_only, sub_orgs_only
from services.customer_normalizer import (
    CustomerNormalizationError,
    normalize_customer,
    normalize_customers,
)
from services.webhook_client import WebhookRequestError, WorkflowWebhookClient, webhook_client
from utils.webhook_config import WebhookName

logger = logging.getLogger(__name__)


class CustomerNotFoundError(LookupError):
    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found")


class InvalidCustomerResponseError(ValueError):
    """Create webhook answered without a usable customer."""


class CustomerService:
    """In-memory view of customers backed by the workflow webhooks."""

    def __init__(self, client: Optional[WorkflowWebhookClient] = None):
        self.client = client or webhook_client
        self.customers: List[Customer] = []
        self.last_rejections: List[NormalizationRejection] = []
        self.error: Optional[str] = None
        self.loaded = False

    # =========================================================================
    # Fetch
    # =========================================================================

    async def refresh_customers(self) -> List[Customer]:
        """Reload every customer from the GET webhook."""
        self.error = None
        self.last_rejections = []

        if not self.client.url_for(WebhookName.GET_CUSTOMERS, required=False):
            self.customers = []
            self.loaded = True
            return self.customers

        try:
            data = await self.client.get_json(WebhookName.GET_CUSTOMERS)
        except WebhookRequestError as e:
            self.error = f"Failed to fetch customers: {e.detail}"
            logger.error(f"Error fetching customers: {e}")
            self.customers = []
            return self.customers

        result = normalize_customers(data)
        if result.contract_violated:
            self.error = "Customer webhook did not return a list"

        self.customers = result.customers
        self.last_rejections = result.rejections
        self.loaded = True
        return self.customers

    async def ensure_loaded(self) -> List[Customer]:
        if not self.loaded:
            await self.refresh_customers()
        return self.customers

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        return next((c for c in self.customers if c.id == customer_id), None)

    def flattened(self, sub_orgs: bool = False) -> List[FlattenedRow]:
        rows = flatten_customers(self.customers)
        return sub_orgs_only(rows) if sub_orgs else rows

    def organizations(self) -> List[Customer]:
        return organizations_only(self.customers)

    def find_row(self, customer_id: str) -> Optional[FlattenedRow]:
        """First flattened row for a customer id (sub-org rows carry the parent)."""
        for row in self.flattened():
            if row.customer.id == customer_id:
                return row
        return None

    # =========================================================================
    # Create / Update / Delete
    # =========================================================================

    async def add_customer(
        self,
        name: str,
        customer_type: CustomerType = CustomerType.ORG,
        parent_org_id: Optional[str] = None,
    ) -> Customer:
        """Create a customer through the create webhook and append it."""
        customer_type = CustomerType(customer_type)
        if customer_type == CustomerType.SUB_ORG and not parent_org_id:
            raise ValueError("Please select a parent organization for sub-organizations")

        payload: Dict[str, Any] = {"name": name, "customer_type": customer_type.value}
        if customer_type == CustomerType.SUB_ORG:
            payload["parent_org_id"] = parent_org_id

        raw = await self.client.post_json(WebhookName.CREATE_CUSTOMER, payload)

        if isinstance(raw, list):
            if not raw:
                raise InvalidCustomerResponseError("Webhook returned empty array")
            logger.info("Create webhook returned array, using first element")
            raw = raw[0]

        try:
            customer = normalize_customer(raw)
        except CustomerNormalizationError as e:
            logger.error(f"Invalid customer response from webhook ({e.reason}): {raw}")
            raise InvalidCustomerResponseError(
                "Invalid response from webhook - missing required fields (id, name)"
            ) from e

        self.customers = [*self.customers, customer]
        logger.info(f"Created customer: {customer.id} ({customer.customer_type.value})")
        return customer

    async def update_customer(self, customer_id: str, updates: Dict[str, Any]) -> Customer:
        """Replace fields of a customer; nested sub-orgs are replaced, never patched."""
        current = self.get_customer(customer_id)
        if current is None:
            raise CustomerNotFoundError(customer_id)

        updates = {k: v for k, v in updates.items() if k != "id"}
        record = current.model_dump(mode="json")
        record.update(updates)
        # Invalid updates never reach the workflow backend
        updated = normalize_customer(record)

        if self.client.url_for(WebhookName.UPDATE_CUSTOMER, required=False):
            await self.client.post_json(WebhookName.UPDATE_CUSTOMER, {"id": customer_id, **updates})

        self.customers = [updated if c.id == customer_id else c for c in self.customers]
        logger.info(f"Updated customer {customer_id}: {sorted(updates)}")
        return updated

    async def delete_customer(self, customer_id: str) -> None:
        if self.get_customer(customer_id) is None:
            raise CustomerNotFoundError(customer_id)

        if self.client.url_for(WebhookName.DELETE_CUSTOMER, required=False):
            await self.client.post_json(WebhookName.DELETE_CUSTOMER, {"id": customer_id})

        self.customers = [c for c in self.customers if c.id != customer_id]
        logger.info(f"Deleted customer {customer_id}")

    # =========================================================================
    # Stats
    # =========================================================================

    async def get_overall_stats(self) -> OverallStats:
        """Dashboard totals; any failure yields zeroed stats."""
        if not self.client.url_for(WebhookName.GET_STATS, required=False):
            return OverallStats()

        try:
            data = await self.client.post_json(WebhookName.GET_STATS, {"key": "overall_stats"})
        except WebhookRequestError as e:
            logger.error(f"Error fetching stats: {e}")
            return OverallStats()

        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            logger.error(f"Unexpected stats payload: {type(data).__name__}")
            return OverallStats()

        try:
            return OverallStats(**{
                field: int(data.get(field) or 0) for field in OverallStats.model_fields
            })
        except (TypeError, ValueError) as e:
            logger.error(f"Error parsing stats: {e}")
            return OverallStats()


# Singleton instance
customer_service = CustomerService()

"""
Client Service - Subscription holders attached to sub-organizations.

Clients are created and listed through the workflow backend, which owns the
Stripe subscription behind each one. Pausing/resuming only forwards the
desired status; the backend performs the Stripe calls.

Batch creation is sequential: one request per client, progress reported
after every attempt, and a failed client never stops the batch.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from faker import Faker

from models import (
    BatchCreateResult,
    Client,
    CustomerType,
    FlattenedRow,
    RecurringInterval,
    SubscriptionAction,
)
from services.customer_normalizer import first_present, parse_timestamp
from services.webhook_client import WebhookRequestError, WorkflowWebhookClient, webhook_client
from utils.webhook_config import WebhookName

logger = logging.getLogger(__name__)

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 1000
STRIPE_DASHBOARD_SUBSCRIPTIONS_URL = "https://dashboard.stripe.com/test/subscriptions"

# Subscription status forwarded per action
SUBSCRIPTION_ACTION_STATUS = {
    SubscriptionAction.PAUSE: {"db_status": "paused", "stripe_status": "void"},
    SubscriptionAction.RESUME: {"db_status": "active", "stripe_status": ""},
}

CLIENT_FIELD_ALIASES = {
    "id": ("id", "Id"),
    "name": ("name", "Name"),
    "customer_id": ("customer_id", "customerId", "CustomerId"),
    "org_name": ("org_name", "orgName", "OrgName"),
    "parent_org_id": ("parent_org_id", "parentOrgId", "ParentOrgId"),
    "parent_org_name": ("parent_org_name", "parentOrgName", "ParentOrgName"),
    "stripe_customer_id": ("stripe_customer_id", "stripeCustomerId"),
    "stripe_subscription_id": ("stripe_subscription_id", "stripeSubscriptionId"),
    "stripe_subscription_status": ("stripe_subscription_status", "stripeSubscriptionStatus"),
}


class ClientValidationError(ValueError):
    pass


# ============================================================================
# Response shaping
# ============================================================================

def unwrap_client_list(data: Any) -> List[Any]:
    """
    Accepts the three shapes the backend answers with:
    - [...]
    - {"data": [...]}
    - [{"data": [...]}]
    """
    # An empty inner list still counts as the wrapped shape
    wrapped = isinstance(data, list) and data and isinstance(data[0], dict)
    if wrapped and isinstance(data[0].get("data"), list):
        data = data[0]["data"]
    elif isinstance(data, dict) and isinstance(data.get("data"), list):
        data = data["data"]
    return data if isinstance(data, list) else []


def normalize_client(record: Dict[str, Any]) -> Client:
    values = {
        field: first_present(record, aliases)
        for field, aliases in CLIENT_FIELD_ALIASES.items()
    }
    created = record.get("created")
    if not created and isinstance(record.get("CreatedAt"), str):
        created = parse_timestamp(record["CreatedAt"])

    return Client(
        id=str(values["id"]) if values["id"] is not None else "",
        name=str(values["name"] or ""),
        customer_id=str(values["customer_id"] or ""),
        org_name=str(values["org_name"] or ""),
        parent_org_id=_str_or_none(values["parent_org_id"]),
        parent_org_name=_str_or_none(values["parent_org_name"]),
        created=created or None,
        stripe_customer_id=_str_or_none(values["stripe_customer_id"]),
        stripe_subscription_id=_str_or_none(values["stripe_subscription_id"]),
        stripe_subscription_status=_str_or_none(values["stripe_subscription_status"]),
    )


def _str_or_none(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def stripe_dashboard_url(client: Client) -> Optional[str]:
    if not client.stripe_subscription_id:
        return None
    return f"{STRIPE_DASHBOARD_SUBSCRIPTIONS_URL}/{client.stripe_subscription_id}"


def build_client_payload(
    target: FlattenedRow,
    name: str,
    recurring_interval: RecurringInterval = RecurringInterval.MONTH,
    recurring_quantity: int = 1,
) -> Dict[str, Any]:
    """Create-client webhook body for a client under the target sub-org."""
    customer = target.customer
    payload: Dict[str, Any] = {
        "name": name,
        "customer_id": customer.id,
        "org_name": customer.name,
        "recurring_interval": RecurringInterval(recurring_interval).value,
        "recurring_quantity": recurring_quantity,
    }
    if customer.customer_type == CustomerType.SUB_ORG:
        if target.parent_org_id:
            payload["parent_org_id"] = target.parent_org_id
        if customer.parent_org_name:
            payload["parent_org_name"] = customer.parent_org_name
    return payload


def _validate_target(target: Optional[FlattenedRow]) -> FlattenedRow:
    if target is None or target.customer.customer_type != CustomerType.SUB_ORG:
        raise ClientValidationError("Please select a sub-organization")
    return target


def _validate_quantity(recurring_quantity: int) -> None:
    if recurring_quantity < 1:
        raise ClientValidationError("Recurring quantity must be at least 1")


# ============================================================================
# Service
# ============================================================================

class ClientService:
    """Client listing, creation and subscription actions."""

    def __init__(
        self,
        client: Optional[WorkflowWebhookClient] = None,
        name_factory: Optional[Callable[[], str]] = None,
    ):
        self.client = client or webhook_client
        self._faker = Faker()
        self.name_factory = name_factory or self._faker.name

    async def fetch_clients(self, customer_id: str) -> List[Client]:
        """Clients of one sub-org; unconfigured webhook yields an empty list."""
        if not customer_id:
            raise ClientValidationError(
                "No sub-organization specified. Please select a sub-org from the homepage."
            )
        if not self.client.url_for(WebhookName.GET_CLIENTS, required=False):
            return []

        data = await self.client.post_json(WebhookName.GET_CLIENTS, {"customer_id": customer_id})

        clients = []
        for index, record in enumerate(unwrap_client_list(data)):
            if not isinstance(record, dict):
                logger.warning(f"Skipping client {index} for {customer_id}: not an object")
                continue
            try:
                clients.append(normalize_client(record))
            except ValueError as e:
                logger.warning(f"Skipping client {index} for {customer_id}: {e}")
        return clients

    async def create_client(
        self,
        target: FlattenedRow,
        name: str,
        recurring_interval: RecurringInterval = RecurringInterval.MONTH,
        recurring_quantity: int = 1,
    ) -> Dict[str, Any]:
        target = _validate_target(target)
        _validate_quantity(recurring_quantity)
        if not name or not name.strip():
            raise ClientValidationError("Client name is required")

        payload = build_client_payload(target, name.strip(), recurring_interval, recurring_quantity)
        logger.info(f"Creating client {payload['name']} under {payload['customer_id']}")
        await self.client.post_json(WebhookName.CREATE_CLIENT, payload)
        return payload

    async def batch_create_clients(
        self,
        target: FlattenedRow,
        count: int,
        recurring_interval: RecurringInterval = RecurringInterval.MONTH,
        recurring_quantity: int = 1,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> BatchCreateResult:
        """Create `count` clients with generated names, one request at a time."""
        target = _validate_target(target)
        _validate_quantity(recurring_quantity)
        if count < MIN_BATCH_SIZE or count > MAX_BATCH_SIZE:
            raise ClientValidationError(
                f"Please enter a number between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}"
            )
        # Fail before the loop rather than once per client
        self.client.url_for(WebhookName.CREATE_CLIENT, required=True)

        result = BatchCreateResult(total=count)
        for i in range(count):
            client_name = self.name_factory()
            payload = build_client_payload(target, client_name, recurring_interval, recurring_quantity)
            try:
                await self.client.post_json(WebhookName.CREATE_CLIENT, payload)
                result.created.append(client_name)
                result.success_count += 1
            except WebhookRequestError as e:
                result.fail_count += 1
                logger.error(f"Error creating client {i + 1} ({client_name}): {e}")

            if on_progress:
                on_progress(i + 1, count)

        logger.info(
            f"Batch create for {target.customer.id}: "
            f"{result.success_count} created, {result.fail_count} failed"
        )
        return result

    async def update_subscription(
        self,
        customer_id: str,
        client: Client,
        action: SubscriptionAction,
    ) -> None:
        action = SubscriptionAction(action)
        name = (
            WebhookName.PAUSE_SUBSCRIPTION
            if action == SubscriptionAction.PAUSE
            else WebhookName.RESUME_SUBSCRIPTION
        )
        payload = {
            "customer_id": customer_id,
            "stripe_subscription_id": client.stripe_subscription_id,
            **SUBSCRIPTION_ACTION_STATUS[action],
        }
        await self.client.post_json(name, payload)
        logger.info(f"Subscription {action.value} requested for client {client.id}")

    async def pause_subscription(self, customer_id: str, client: Client) -> None:
        await self.update_subscription(customer_id, client, SubscriptionAction.PAUSE)

    async def resume_subscription(self, customer_id: str, client: Client) -> None:
        await self.update_subscription(customer_id, client, SubscriptionAction.RESUME)


# Singleton instance
client_service = ClientService()

"""
Tests for client listing, creation (single and batch) and subscription actions.
"""
import pytest

from models import Client, RecurringInterval
from services.client_service import (
    ClientService,
    ClientValidationError,
    build_client_payload,
    normalize_client,
    stripe_dashboard_url,
    unwrap_client_list,
)
from services.customer_hierarchy import flatten_customers
from services.customer_normalizer import normalize_customer
from services.webhook_client import WebhookRequestError
from utils.webhook_config import WebhookName, WebhookNotConfiguredError
from mock_webhooks import make_webhook_client


def _rows():
    parent = normalize_customer({
        "id": "10", "name": "Alpha Holdings", "created": 1700000000,
        "suborgs": [{"id": "11", "name": "Alpha North", "customer_type": "sub-org", "created": 1700000000}],
    })
    return flatten_customers([parent])


def _suborg_row():
    return _rows()[1]


def _names(*names):
    it = iter(names)
    return lambda: next(it)


class TestResponseShaping:

    def test_plain_list(self):
        assert unwrap_client_list([{"id": 1}]) == [{"id": 1}]

    def test_wrapped_object(self):
        assert unwrap_client_list({"data": [{"id": 1}]}) == [{"id": 1}]

    def test_array_wrapped_object(self):
        assert unwrap_client_list([{"data": [{"id": 1}, {"id": 2}]}]) == [{"id": 1}, {"id": 2}]

    @pytest.mark.parametrize("data", [[{"data": []}], {"data": []}, []])
    def test_empty_shapes_unwrap_to_empty(self, data):
        assert unwrap_client_list(data) == []

    @pytest.mark.parametrize("data", [None, {"data": "x"}, "text", {}])
    def test_anything_else_is_empty(self, data):
        assert unwrap_client_list(data) == []

    def test_normalize_client_aliases(self):
        client = normalize_client({
            "Id": 5,
            "Name": "Jane Doe",
            "CustomerId": 11,
            "orgName": "Alpha North",
            "ParentOrgId": "10",
            "parentOrgName": "Alpha Holdings",
            "CreatedAt": "2024-01-01T00:00:00Z",
            "stripeSubscriptionId": "sub_123",
            "stripe_subscription_status": "active",
        })
        assert client.id == "5"
        assert client.customer_id == "11"
        assert client.org_name == "Alpha North"
        assert client.parent_org_id == "10"
        assert client.parent_org_name == "Alpha Holdings"
        assert client.created == 1704067200
        assert client.stripe_subscription_id == "sub_123"
        assert client.stripe_subscription_status == "active"

    def test_stripe_dashboard_url(self):
        assert stripe_dashboard_url(Client(id="1", stripe_subscription_id="sub_9")) == (
            "https://dashboard.stripe.com/test/subscriptions/sub_9"
        )
        assert stripe_dashboard_url(Client(id="1")) is None


class TestBuildPayload:

    def test_sub_org_payload_includes_parent(self):
        payload = build_client_payload(_suborg_row(), "Jane Doe", RecurringInterval.WEEK, 2)
        assert payload == {
            "name": "Jane Doe",
            "customer_id": "11",
            "org_name": "Alpha North",
            "recurring_interval": "week",
            "recurring_quantity": 2,
            "parent_org_id": "10",
            "parent_org_name": "Alpha Holdings",
        }

    def test_org_payload_has_no_parent(self):
        payload = build_client_payload(_rows()[0], "Jane Doe")
        assert "parent_org_id" not in payload
        assert payload["recurring_interval"] == "month"


class TestFetchClients:

    @pytest.mark.asyncio
    async def test_fetch(self):
        hook = make_webhook_client(post_json=[{"data": [{"id": 1, "name": "A"}, "junk", {"Id": 2, "Name": "B"}]}])
        clients = await ClientService(client=hook).fetch_clients("11")

        assert [c.id for c in clients] == ["1", "2"]
        hook.post_json.assert_awaited_once_with(WebhookName.GET_CLIENTS, {"customer_id": "11"})

    @pytest.mark.asyncio
    async def test_empty_wrapped_response_yields_no_clients(self):
        hook = make_webhook_client(post_json=[{"data": []}])
        assert await ClientService(client=hook).fetch_clients("11") == []

    @pytest.mark.asyncio
    async def test_requires_customer_id(self):
        with pytest.raises(ClientValidationError):
            await ClientService(client=make_webhook_client()).fetch_clients("")

    @pytest.mark.asyncio
    async def test_unconfigured_returns_empty(self):
        hook = make_webhook_client(url=None)
        assert await ClientService(client=hook).fetch_clients("11") == []
        hook.post_json.assert_not_awaited()


class TestCreateClient:

    @pytest.mark.asyncio
    async def test_create(self):
        hook = make_webhook_client()
        payload = await ClientService(client=hook).create_client(_suborg_row(), "  Jane Doe ")

        assert payload["name"] == "Jane Doe"
        hook.post_json.assert_awaited_once_with(WebhookName.CREATE_CLIENT, payload)

    @pytest.mark.asyncio
    async def test_org_target_rejected(self):
        hook = make_webhook_client()
        with pytest.raises(ClientValidationError, match="sub-organization"):
            await ClientService(client=hook).create_client(_rows()[0], "Jane Doe")
        hook.post_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self):
        with pytest.raises(ClientValidationError):
            await ClientService(client=make_webhook_client()).create_client(_suborg_row(), " ")


class TestBatchCreate:

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_batch(self):
        hook = make_webhook_client()
        hook.post_json.side_effect = [
            None,
            WebhookRequestError(WebhookName.CREATE_CLIENT, 500, "HTTP 500"),
            None,
        ]
        progress = []
        service = ClientService(client=hook, name_factory=_names("Ann", "Bob", "Cal"))

        result = await service.batch_create_clients(
            _suborg_row(), 3, on_progress=lambda current, total: progress.append((current, total)),
        )

        assert result.created == ["Ann", "Cal"]
        assert result.success_count == 2
        assert result.fail_count == 1
        assert result.message == "Created 2 clients successfully, 1 failed"
        assert progress == [(1, 3), (2, 3), (3, 3)]
        assert hook.post_json.await_count == 3
        sent_names = [call.args[1]["name"] for call in hook.post_json.await_args_list]
        assert sent_names == ["Ann", "Bob", "Cal"]

    @pytest.mark.asyncio
    async def test_all_succeed_has_no_message(self):
        service = ClientService(client=make_webhook_client(), name_factory=_names("Ann", "Bob"))
        result = await service.batch_create_clients(_suborg_row(), 2, RecurringInterval.YEAR, 3)

        assert result.success_count == 2
        assert result.message is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 1001])
    async def test_count_bounds(self, count):
        hook = make_webhook_client()
        with pytest.raises(ClientValidationError, match="between 1 and 1000"):
            await ClientService(client=hook).batch_create_clients(_suborg_row(), count)
        hook.post_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_webhook_fails_before_loop(self):
        hook = make_webhook_client()
        hook.url_for.side_effect = WebhookNotConfiguredError(WebhookName.CREATE_CLIENT)
        with pytest.raises(WebhookNotConfiguredError):
            await ClientService(client=hook).batch_create_clients(_suborg_row(), 5)
        hook.post_json.assert_not_awaited()

    def test_default_names_come_from_faker(self):
        name = ClientService(client=make_webhook_client()).name_factory()
        assert isinstance(name, str) and name.strip()


class TestSubscriptionActions:

    @pytest.mark.asyncio
    async def test_pause_payload(self):
        hook = make_webhook_client()
        client = Client(id="5", stripe_subscription_id="sub_123")
        await ClientService(client=hook).pause_subscription("11", client)

        hook.post_json.assert_awaited_once_with(WebhookName.PAUSE_SUBSCRIPTION, {
            "customer_id": "11",
            "stripe_subscription_id": "sub_123",
            "db_status": "paused",
            "stripe_status": "void",
        })

    @pytest.mark.asyncio
    async def test_resume_payload(self):
        hook = make_webhook_client()
        client = Client(id="5", stripe_subscription_id="sub_123")
        await ClientService(client=hook).resume_subscription("11", client)

        hook.post_json.assert_awaited_once_with(WebhookName.RESUME_SUBSCRIPTION, {
            "customer_id": "11",
            "stripe_subscription_id": "sub_123",
            "db_status": "active",
            "stripe_status": "",
        })

"""Workflow Webhook Client - JSON calls to the workflow-automation backend.

Every read and write of customers, clients and subscriptions goes through
here. Calls are single-shot: no retries, failures surface to the caller as
WebhookRequestError.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from utils.webhook_config import get_webhook_url

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
MAX_ERROR_BODY_CHARS = 200


class WebhookRequestError(Exception):
    """Webhook call failed (status_code 0 = no HTTP response)."""

    def __init__(self, name: str, status_code: int, detail: str):
        self.name = name
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Webhook {name} failed: {detail}")


class WorkflowWebhookClient:
    """Thin JSON client over the configured workflow webhooks."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = REQUEST_TIMEOUT_SECONDS
        # Tests inject httpx.MockTransport here
        self.transport = transport

    def url_for(self, name: str, required: bool = True) -> Optional[str]:
        return get_webhook_url(name, required=required)

    async def get_json(self, name: str) -> Any:
        url = self.url_for(name)
        return await self._request(name, "GET", url)

    async def post_json(self, name: str, payload: Dict[str, Any]) -> Any:
        url = self.url_for(name)
        return await self._request(name, "POST", url, payload)

    async def _request(
        self,
        name: str,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method,
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException:
            logger.error(f"Webhook {name} timeout")
            raise WebhookRequestError(name, 0, f"Request timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            logger.error(f"Webhook {name} connection error: {e}")
            raise WebhookRequestError(name, 0, f"Connection error: {e}")

        if not response.is_success:
            body = response.text[:MAX_ERROR_BODY_CHARS]
            logger.warning(f"Webhook {name} failed: {response.status_code}")
            raise WebhookRequestError(
                name,
                response.status_code,
                f"HTTP {response.status_code}: {response.reason_phrase or body}",
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.error(f"Webhook {name} returned non-JSON body")
            raise WebhookRequestError(name, response.status_code, "Response is not valid JSON")


# Singleton instance
webhook_client = WorkflowWebhookClient()

"""
Workflow webhook URLs. Every call to the workflow-automation backend resolves its URL here.
No other code should read WEBHOOK_* environment variables directly.
"""
import os
import logging
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)


class WebhookName:
    GET_CUSTOMERS = "GET_CUSTOMERS"
    CREATE_CUSTOMER = "CREATE_CUSTOMER"
    UPDATE_CUSTOMER = "UPDATE_CUSTOMER"
    DELETE_CUSTOMER = "DELETE_CUSTOMER"
    GET_CLIENTS = "GET_CLIENTS"
    CREATE_CLIENT = "CREATE_CLIENT"
    PAUSE_SUBSCRIPTION = "PAUSE_SUBSCRIPTION"
    RESUME_SUBSCRIPTION = "RESUME_SUBSCRIPTION"
    GET_STATS = "GET_STATS"


class WebhookNotConfiguredError(ValueError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"WEBHOOK_{name} is not configured")


def get_webhook_url(name: str, required: bool = False) -> Optional[str]:
    """
    Return the URL for a workflow webhook, stripped, or None when unset.
    Fallback order: WEBHOOK_<NAME>, NEXT_PUBLIC_WEBHOOK_<NAME> (legacy frontend env files).

    Raises:
        WebhookNotConfiguredError: required=True and no URL is set
    """
    raw = (
        (os.getenv(f"WEBHOOK_{name}") or "").strip()
        or (os.getenv(f"NEXT_PUBLIC_WEBHOOK_{name}") or "").strip()
    )
    if raw:
        return raw
    if required:
        raise WebhookNotConfiguredError(name)
    logger.debug(f"WEBHOOK_{name} is not configured")
    return None


def log_webhook_configuration() -> List[str]:
    """Log each webhook's status once (never the URLs); returns the unset names."""
    missing = []
    for name in sorted(v for k, v in vars(WebhookName).items() if not k.startswith("_")):
        if get_webhook_url(name) is None:
            missing.append(name)
            logger.warning(f"WEBHOOK_{name} is not configured")
        else:
            logger.info(f"WEBHOOK_{name} configured")
    return missing

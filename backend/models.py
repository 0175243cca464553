from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List, Union
from enum import Enum

# ============================================================================
# ENUMS (System Constants)
# ============================================================================

class CustomerType(str, Enum):
    ORG = "org"
    SUB_ORG = "sub-org"

class RecurringInterval(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

class SubscriptionAction(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"

class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"

class RejectionReason:
    NULL_RECORD = "null or undefined"
    MISSING_ID = "missing id"
    MISSING_NAME = "missing name"
    TRANSFORM_ERROR = "transform error"
    MALFORMED_CHILD = "malformed child reference"

# ============================================================================
# CUSTOMER HIERARCHY
# ============================================================================

class Customer(BaseModel):
    """Organization or sub-organization as reported by the workflow backend."""
    id: str
    name: str
    customer_type: CustomerType = CustomerType.ORG
    created: Union[int, float]
    client_count: int = 0
    suborgs: List["Customer"] = Field(default_factory=list)
    parent_org_name: Optional[str] = None
    email: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}

    @property
    def is_sub_org(self) -> bool:
        return self.customer_type == CustomerType.SUB_ORG


class FlattenedRow(BaseModel):
    """Display row for flat search/selection (never persisted)."""
    unique_key: str
    customer: Customer
    parent_org_id: Optional[str] = None


class NormalizationRejection(BaseModel):
    index: Optional[int] = None
    reason: str
    record: Any = None
    error: Optional[str] = None


class NormalizationResult(BaseModel):
    customers: List[Customer] = Field(default_factory=list)
    rejections: List[NormalizationRejection] = Field(default_factory=list)
    contract_violated: bool = False

# ============================================================================
# CLIENTS (subscription holders)
# ============================================================================

class Client(BaseModel):
    id: str
    name: str = ""
    customer_id: str = ""
    org_name: str = ""
    parent_org_id: Optional[str] = None
    parent_org_name: Optional[str] = None
    created: Optional[Union[int, float]] = None
    # Stripe fields
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_subscription_status: Optional[str] = None

    model_config = {"extra": "ignore"}


class BatchCreateResult(BaseModel):
    total: int
    success_count: int = 0
    fail_count: int = 0
    created: List[str] = Field(default_factory=list)

    @property
    def message(self) -> Optional[str]:
        if self.fail_count > 0:
            return f"Created {self.success_count} clients successfully, {self.fail_count} failed"
        return None


class OverallStats(BaseModel):
    totalOrgs: int = 0
    totalSubOrgs: int = 0
    totalClients: int = 0
    totalActiveClients: int = 0
    totalPausedClients: int = 0

# ============================================================================
# PREFERENCES & DRAFTS
# ============================================================================

class AppPreferences(BaseModel):
    items_per_page: int = 10
    default_customer_type: CustomerType = CustomerType.ORG
    show_welcome_message: bool = True

    model_config = {"extra": "ignore"}


class FormDraft(BaseModel):
    name: str = ""
    customer_type: CustomerType = CustomerType.ORG
    timestamp: int  # epoch milliseconds

    model_config = {"extra": "ignore"}

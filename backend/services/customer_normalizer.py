"""
Customer Normalizer - Reconciles workflow webhook payloads into Customer models.

The workflow backend is not consistent about key spelling (id / Id / ID,
customer_type / customerType, CreatedAt vs created, ...). Every canonical
field is resolved from a fixed, ordered alias table: the first alias that is
present wins. The tables are data so they can be tested and extended without
touching the resolution code.

Rules:
1. id and name are mandatory - records without them are rejected, never
   returned half-populated
2. Nested sub-orgs are normalized one level deep only (grandchildren ignored)
3. A sub-org entry survives only if it is a sub-org and is not the parent itself
4. One bad record never aborts a batch - it is dropped with a recorded reason
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from models import (
    Customer,
    CustomerType,
    NormalizationRejection,
    NormalizationResult,
    RejectionReason,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ALIAS TABLES (first present wins, case-sensitive)
# ============================================================================

ID_ALIASES = ("id", "Id", "ID")
NAME_ALIASES = ("name", "Name", "NAME")
CUSTOMER_TYPE_ALIASES = ("customer_type", "customerType", "CustomerType")
CREATED_EPOCH_ALIASES = ("created", "Created")
CREATED_TIMESTAMP_ALIASES = ("CreatedAt", "created_at", "createdAt")
CLIENT_COUNT_ALIASES = ("client_count", "clientCount", "ClientCount")
SUBORG_ALIASES = ("suborgs", "subOrgs", "SubOrgs", "sub_orgs")
PARENT_ORG_NAME_ALIASES = ("parent_org_name", "parentOrgName", "ParentOrgName")
EMAIL_ALIASES = ("email", "Email")
METADATA_ALIASES = ("metadata", "Metadata")

CUSTOMER_TYPE_VALUES = {
    "org": CustomerType.ORG,
    "organization": CustomerType.ORG,
    "sub-org": CustomerType.SUB_ORG,
    "sub_org": CustomerType.SUB_ORG,
    "suborg": CustomerType.SUB_ORG,
    "sub-organization": CustomerType.SUB_ORG,
    "sub_organization": CustomerType.SUB_ORG,
}


# ============================================================================
# ERRORS
# ============================================================================

class CustomerNormalizationError(Exception):
    """Base error for a record that cannot become a Customer."""
    reason = RejectionReason.TRANSFORM_ERROR


class MissingRequiredField(CustomerNormalizationError):
    def __init__(self, field: str):
        self.field = field
        self.reason = f"missing {field}"
        super().__init__(self.reason)


class TransformFailure(CustomerNormalizationError):
    reason = RejectionReason.TRANSFORM_ERROR


class MalformedChildReference(CustomerNormalizationError):
    """Nested sub-org dropped from its parent only (wrong kind or self reference)."""
    reason = RejectionReason.MALFORMED_CHILD


# ============================================================================
# FIELD RESOLUTION
# ============================================================================

def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def first_present(record: Dict[str, Any], aliases: Iterable[str]) -> Any:
    """Return the value of the first alias present in record, else None."""
    for key in aliases:
        value = record.get(key)
        if _is_present(value):
            return value
    return None


def parse_timestamp(value: str) -> Union[int, float]:
    """Convert an ISO-like date-time string to epoch seconds (naive = UTC)."""
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = dt.timestamp()
    return int(seconds) if float(seconds).is_integer() else seconds


def _now_epoch() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def resolve_created(record: Dict[str, Any]) -> Union[int, float]:
    """Epoch field verbatim, else parsed timestamp string, else now (synthetic)."""
    epoch = first_present(record, CREATED_EPOCH_ALIASES)
    if epoch is not None:
        if isinstance(epoch, bool):
            raise TransformFailure(f"invalid created value: {epoch!r}")
        if isinstance(epoch, (int, float)):
            return epoch
        if isinstance(epoch, str):
            try:
                number = float(epoch)
            except ValueError:
                return parse_timestamp(epoch)
            return int(number) if number.is_integer() else number
        raise TransformFailure(f"invalid created value: {epoch!r}")

    stamp = first_present(record, CREATED_TIMESTAMP_ALIASES)
    if stamp is not None:
        if not isinstance(stamp, str):
            raise TransformFailure(f"invalid timestamp value: {stamp!r}")
        return parse_timestamp(stamp)

    return _now_epoch()


def resolve_customer_type(record: Dict[str, Any]) -> CustomerType:
    raw = first_present(record, CUSTOMER_TYPE_ALIASES)
    if isinstance(raw, CustomerType):
        return raw
    if isinstance(raw, str):
        return CUSTOMER_TYPE_VALUES.get(raw.strip().lower(), CustomerType.ORG)
    return CustomerType.ORG


def resolve_client_count(record: Dict[str, Any]) -> int:
    raw = first_present(record, CLIENT_COUNT_ALIASES)
    if raw is None:
        return 0
    if isinstance(raw, bool):
        raise TransformFailure(f"invalid client_count value: {raw!r}")
    return max(0, int(raw))


def _resolve_id(record: Dict[str, Any]) -> str:
    raw = first_present(record, ID_ALIASES)
    if raw is None:
        raise MissingRequiredField("id")
    customer_id = str(raw).strip()
    if not customer_id:
        raise MissingRequiredField("id")
    return customer_id


def _resolve_name(record: Dict[str, Any]) -> str:
    raw = first_present(record, NAME_ALIASES)
    if raw is None or not str(raw).strip():
        raise MissingRequiredField("name")
    return str(raw)


def _optional_str(record: Dict[str, Any], aliases: Sequence[str]) -> Optional[str]:
    raw = first_present(record, aliases)
    return str(raw) if raw is not None else None


# ============================================================================
# NORMALIZATION
# ============================================================================

def _build_customer(record: Dict[str, Any], include_suborgs: bool) -> Customer:
    if not isinstance(record, dict):
        raise TransformFailure(f"expected a mapping, got {type(record).__name__}")

    customer_id = _resolve_id(record)
    name = _resolve_name(record)

    try:
        customer_type = resolve_customer_type(record)
        created = resolve_created(record)
        client_count = resolve_client_count(record)
        metadata = first_present(record, METADATA_ALIASES)
        suborgs = _normalize_suborgs(record, customer_id) if include_suborgs else []

        return Customer(
            id=customer_id,
            name=name,
            customer_type=customer_type,
            created=created,
            client_count=client_count,
            suborgs=suborgs,
            parent_org_name=_optional_str(record, PARENT_ORG_NAME_ALIASES),
            email=_optional_str(record, EMAIL_ALIASES),
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )
    except CustomerNormalizationError:
        raise
    except Exception as e:
        raise TransformFailure(str(e)) from e


def _normalize_suborgs(record: Dict[str, Any], parent_id: str) -> List[Customer]:
    raw_suborgs = first_present(record, SUBORG_ALIASES)
    if not isinstance(raw_suborgs, list):
        return []

    suborgs = []
    for index, raw in enumerate(raw_suborgs):
        try:
            suborg = check_child_reference(_build_customer(raw, include_suborgs=False), parent_id)
        except CustomerNormalizationError as e:
            logger.debug(f"Dropping sub-org {index} of customer {parent_id}: {e.reason} ({e})")
            continue
        suborgs.append(suborg)
    return suborgs


def check_child_reference(suborg: Customer, parent_id: str) -> Customer:
    """
    Parent-relationship filter for one normalized child.

    Raises:
        MalformedChildReference: child is not a sub-org, or is the parent itself
    """
    if suborg.customer_type != CustomerType.SUB_ORG:
        raise MalformedChildReference("not a sub-org")
    if suborg.id == parent_id:
        raise MalformedChildReference("self reference")
    return suborg


def normalize_customer(record: Dict[str, Any]) -> Customer:
    """
    Normalize one raw webhook record into a Customer.

    Raises:
        MissingRequiredField: no resolvable id or name
        TransformFailure: any other failure while resolving fields
    """
    if isinstance(record, Customer):
        record = record.model_dump(mode="json")
    return _build_customer(record, include_suborgs=True)


def normalize_customers(payload: Any) -> NormalizationResult:
    """
    Normalize a fetch-all webhook response.

    A payload that is not a list violates the backend contract and yields an
    empty result flagged as such. Otherwise every record is either accepted
    (input order preserved) or recorded as a rejection.
    """
    if not isinstance(payload, list):
        logger.error(f"Expected array from webhook, got: {type(payload).__name__}")
        return NormalizationResult(contract_violated=True)

    result = NormalizationResult()
    for index, record in enumerate(payload):
        if record is None:
            logger.error(f"Customer at index {index} is null/undefined")
            result.rejections.append(
                NormalizationRejection(index=index, reason=RejectionReason.NULL_RECORD)
            )
            continue

        try:
            result.customers.append(normalize_customer(record))
        except CustomerNormalizationError as e:
            logger.error(f"Customer at index {index} rejected ({e.reason}): {record}")
            result.rejections.append(
                NormalizationRejection(index=index, reason=e.reason, record=record, error=str(e))
            )

    if result.rejections:
        logger.warning(f"Filtered out {len(result.rejections)} invalid customers")
    logger.info(f"Loaded {len(result.customers)} valid customers")
    return result

"""Customer Hierarchy - flat projections of the org → sub-org tree.

flatten_customers() is the single source for every flat listing (search
suggestions, client assignment pickers). Output order is always
[org1, org1 sub-orgs..., org2, org2 sub-orgs..., ...].
"""
import logging
from typing import Iterable, List, Sequence

from models import Customer, CustomerType, FlattenedRow

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 8


def _unique(key: str, seen: set) -> str:
    # Duplicate ids from the backend are not deduplicated; keys still must be.
    candidate, count = key, 0
    while candidate in seen:
        count += 1
        candidate = f"{key}-{count}"
    if count:
        logger.warning(f"Duplicate row key {key} in flattened hierarchy")
    seen.add(candidate)
    return candidate


def flatten_customers(customers: Sequence[Customer]) -> List[FlattenedRow]:
    """Each top-level customer followed immediately by its sub-orgs."""
    rows: List[FlattenedRow] = []
    seen: set = set()

    for customer in customers:
        rows.append(FlattenedRow(
            unique_key=_unique(f"org-{customer.id}", seen),
            customer=customer,
        ))
        for index, suborg in enumerate(customer.suborgs):
            rows.append(FlattenedRow(
                unique_key=_unique(f"suborg-{customer.id}-{suborg.id or index}", seen),
                customer=suborg.model_copy(update={"parent_org_name": customer.name}),
                parent_org_id=customer.id,
            ))

    return rows


def sub_orgs_only(rows: Iterable[FlattenedRow]) -> List[FlattenedRow]:
    """Rows that can have clients assigned to them."""
    return [row for row in rows if row.customer.customer_type == CustomerType.SUB_ORG]


def organizations_only(customers: Iterable[Customer]) -> List[Customer]:
    """Top-level orgs (candidate parents for a new sub-org)."""
    return [c for c in customers if c.customer_type == CustomerType.ORG]


def search_suggestions(
    rows: Iterable[FlattenedRow],
    query: str,
    limit: int = MAX_SUGGESTIONS,
) -> List[FlattenedRow]:
    """Autocomplete matches on the row name or its parent org name."""
    needle = (query or "").lower()
    matches = []
    for row in rows:
        customer = row.customer
        if not customer.name:
            continue
        name_matches = needle in customer.name.lower()
        parent_matches = bool(customer.parent_org_name) and needle in customer.parent_org_name.lower()
        if name_matches or parent_matches:
            matches.append(row)
            if len(matches) >= limit:
                break
    return matches


def filter_customers(customers: Iterable[Customer], query: str) -> List[Customer]:
    """Top-level customers matching by own name or any sub-org name."""
    needle = (query or "").lower()
    result = []
    for customer in customers:
        if not customer.name:
            continue
        if not needle:
            result.append(customer)
            continue
        if needle in customer.name.lower() or any(
            suborg.name and needle in suborg.name.lower() for suborg in customer.suborgs
        ):
            result.append(customer)
    return result

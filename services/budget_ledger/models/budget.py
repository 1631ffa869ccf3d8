from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class BudgetStatus(str, Enum):
    """Commercial outcome of a quote."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    NOT_APPROVED = "NOT_APPROVED"


MISSING_TEXT = "---"


@dataclass(slots=True)
class AttachedFile:
    """Reference to a document backing a budget (usually the quote PDF in Drive)."""

    id: str
    name: str
    url: str
    type: str = "pdf"


@dataclass(slots=True)
class Budget:
    """
    Canonical quote record held by the ledger.

    `id` is assigned by the store on first persistence and never reassigned; records
    coming from a sync pass start with an empty id.
    """

    id: str = ""
    date: str = ""
    client_name: str = MISSING_TEXT
    service_description: str = MISSING_TEXT
    budget_amount: float = 0.0
    discount: float = 0.0
    status: BudgetStatus = BudgetStatus.PENDING
    order_number: str | None = None
    order_confirmation: bool = False
    invoice_sent: bool = False
    send_to_client: bool = True
    requester: str = ""
    item_number: int | None = None
    files: list[AttachedFile] = field(default_factory=list)

    @property
    def net_amount(self) -> float:
        return self.budget_amount - self.discount


def budget_to_payload(budget: Budget) -> dict[str, Any]:
    """Serialize a Budget into the JSON document stored under the ledger key."""
    return {
        "id": budget.id,
        "item_number": budget.item_number,
        "date": budget.date,
        "client_name": budget.client_name,
        "service_description": budget.service_description,
        "budget_amount": budget.budget_amount,
        "discount": budget.discount,
        "status": budget.status.value,
        "order_number": budget.order_number,
        "order_confirmation": budget.order_confirmation,
        "invoice_sent": budget.invoice_sent,
        "send_to_client": budget.send_to_client,
        "requester": budget.requester,
        "files": [
            {"id": attached.id, "name": attached.name, "url": attached.url, "type": attached.type}
            for attached in budget.files
        ],
    }


def budget_from_payload(payload: Mapping[str, Any]) -> Budget:
    """
    Rebuild a Budget from stored JSON, tolerating missing keys and loose types.

    Older documents may lack fields added later; each falls back to the dataclass default.
    """

    return Budget(
        id=str(payload.get("id") or ""),
        item_number=_optional_int(payload.get("item_number")),
        date=str(payload.get("date") or ""),
        client_name=str(payload.get("client_name") or MISSING_TEXT),
        service_description=str(payload.get("service_description") or MISSING_TEXT),
        budget_amount=_as_float(payload.get("budget_amount")),
        discount=_as_float(payload.get("discount")),
        status=_as_status(payload.get("status")),
        order_number=_optional_str(payload.get("order_number")),
        order_confirmation=bool(payload.get("order_confirmation", False)),
        invoice_sent=bool(payload.get("invoice_sent", False)),
        send_to_client=bool(payload.get("send_to_client", True)),
        requester=str(payload.get("requester") or ""),
        files=_files_from_payload(payload.get("files")),
    )


def _files_from_payload(raw_value: Any) -> list[AttachedFile]:
    if not isinstance(raw_value, list):
        return []
    return [_file_from_payload(item) for item in raw_value if isinstance(item, Mapping)]


def _file_from_payload(item: Mapping[str, Any]) -> AttachedFile:
    return AttachedFile(
        id=str(item.get("id") or ""),
        name=str(item.get("name") or ""),
        url=str(item.get("url") or ""),
        type=str(item.get("type") or "pdf"),
    )


def _as_status(raw_value: Any) -> BudgetStatus:
    try:
        return BudgetStatus(raw_value)
    except ValueError:
        return BudgetStatus.PENDING


def _as_float(raw_value: Any) -> float:
    try:
        value = float(raw_value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def _optional_int(raw_value: Any) -> int | None:
    if raw_value is None or raw_value == "":
        return None
    try:
        return int(float(raw_value))
    except (TypeError, ValueError, OverflowError):
        return None


def _optional_str(raw_value: Any) -> str | None:
    if raw_value is None:
        return None
    return str(raw_value)

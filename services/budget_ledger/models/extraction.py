from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from budget_ledger.models.budget import AttachedFile, Budget, BudgetStatus
from budget_ledger.models.drive_file import ScannedFile
from budget_ledger.parsers.normalizers import parse_currency, parse_date

DRIVE_REQUESTER_TAG = "Monitoramento Drive"
DRIVE_CLIENT_FALLBACK = "Cliente Detectado via Drive"
DEFAULT_PLACEHOLDER_AMOUNT = 25500.0


@dataclass(slots=True)
class ExtractedBudget:
    """
    Best-effort fields read from a quote document. Every field may be absent.
    """

    client_name: Optional[str] = None
    service_description: Optional[str] = None
    budget_amount: Optional[float] = None
    date: Optional[str] = None
    discount: Optional[float] = None
    requester: Optional[str] = None
    order_number: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ExtractedBudget":
        """
        Coerce a loosely typed JSON object (camelCase or snake_case keys).

        Blank strings count as absent; amounts may arrive as numbers or "R$ 1.234,56".
        """

        def pick(*keys: str) -> Any:
            for key in keys:
                value = payload.get(key)
                if value is not None and value != "":
                    return value
            return None

        amount = pick("budget_amount", "budgetAmount")
        discount = pick("discount")
        return cls(
            client_name=_clean_text(pick("client_name", "clientName")),
            service_description=_clean_text(pick("service_description", "serviceDescription")),
            budget_amount=parse_currency(amount) if amount is not None else None,
            date=_clean_text(pick("date")),
            discount=parse_currency(discount) if discount is not None else None,
            requester=_clean_text(pick("requester")),
            order_number=_clean_text(pick("order_number", "orderNumber")),
        )


def budget_from_extraction(
    extracted: ExtractedBudget,
    scanned: ScannedFile,
    *,
    today: Optional[date] = None,
    placeholder_amount: float = DEFAULT_PLACEHOLDER_AMOUNT,
    requester_tag: str = DRIVE_REQUESTER_TAG,
    client_fallback: str = DRIVE_CLIENT_FALLBACK,
) -> Budget:
    """
    Build a ledger candidate from extracted fields. All defaulting happens here.

    The description is prefixed with the file's PR code so the candidate fingerprints to
    the same identity the scanner used to decide it was missing from the ledger.
    """

    has_order = bool(extracted.order_number)
    description = extracted.service_description or scanned.file.name
    return Budget(
        id="",
        date=parse_date(extracted.date, today=today),
        client_name=extracted.client_name or client_fallback,
        service_description=f"{scanned.pr_code} - {description}",
        budget_amount=extracted.budget_amount or placeholder_amount,
        discount=extracted.discount or 0.0,
        status=BudgetStatus.APPROVED if has_order else BudgetStatus.PENDING,
        order_number=extracted.order_number,
        order_confirmation=has_order,
        invoice_sent=False,
        send_to_client=True,
        requester=extracted.requester or requester_tag,
        files=[
            AttachedFile(
                id=scanned.file.id,
                name=scanned.file.name,
                url=scanned.file.web_view_link,
                type="pdf",
            )
        ],
    )


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None

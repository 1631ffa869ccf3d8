from budget_ledger.fingerprint import fingerprint, format_amount
from budget_ledger.models.budget import Budget


def test_budgets_sharing_a_pr_code_share_a_fingerprint():
    first = Budget(id="a1", service_description="PR1724 - Projeto Elétrico", client_name="Vale Azul")
    second = Budget(id="b2", service_description="pr 01724 revisão final", client_name="Outro Cliente")

    assert fingerprint(first) == fingerprint(second) == "PR01724"


def test_fallback_fingerprint_uses_date_client_and_amount():
    budget = Budget(
        date="2024-03-05",
        client_name="Construtora ACME",
        service_description="Pintura externa",
        budget_amount=1500.0,
    )

    assert fingerprint(budget) == "2024-03-05-construtora acme-1500"


def test_fallback_fingerprint_ignores_id_and_status():
    first = Budget(id="x", date="2024-03-05", client_name="ACME", budget_amount=99.9)
    second = Budget(id="y", date="2024-03-05", client_name="acme", budget_amount=99.9, invoice_sent=True)

    assert fingerprint(first) == fingerprint(second)


def test_fallback_collides_for_distinct_quotes_without_pr_code():
    first = Budget(date="2024-03-05", client_name="ACME", budget_amount=500, service_description="Pintura")
    second = Budget(date="2024-03-05", client_name="ACME", budget_amount=500, service_description="Elétrica")

    assert fingerprint(first) == fingerprint(second)


def test_format_amount_drops_trailing_zero_fraction():
    assert format_amount(1500) == format_amount(1500.0) == "1500"
    assert format_amount(1234.56) == "1234.56"

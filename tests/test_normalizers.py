from datetime import date

import pytest

from budget_ledger.parsers.normalizers import extract_pr_code, extract_revision_number, parse_currency, parse_date


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234,56", 1234.56),
        ("R$ 1.234,56", 1234.56),
        ("R$12.500,00", 12500.0),
        (" 850,5 ", 850.5),
        ("1500", 1500.0),
        (2750.25, 2750.25),
        (42, 42.0),
    ],
)
def test_parse_currency_reads_brazilian_amounts(raw, expected):
    assert parse_currency(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", None, "   ", "R$", "a combinar", float("nan"), float("inf"), True])
def test_parse_currency_never_raises_and_defaults_to_zero(raw):
    assert parse_currency(raw) == 0.0


def test_parse_date_expands_two_digit_years():
    assert parse_date("05/03/24") == "2024-03-05"


def test_parse_date_reads_four_digit_years_and_pads_parts():
    assert parse_date("5/3/2025") == "2025-03-05"


def test_parse_date_passes_through_non_slash_values():
    assert parse_date("2024-11-02") == "2024-11-02"
    assert parse_date("março") == "março"


def test_parse_date_defaults_to_today_when_missing():
    today = date(2025, 1, 31)

    assert parse_date(None, today=today) == "2025-01-31"
    assert parse_date("", today=today) == "2025-01-31"


def test_extract_pr_code_normalizes_every_spelling_to_the_same_code():
    assert extract_pr_code("PR1724") == extract_pr_code("pr 01724") == "PR01724"
    assert extract_pr_code("Projeto Elétrico pr0930 - bloco B") == "PR00930"
    assert extract_pr_code("PR12345 reforma") == "PR12345"


@pytest.mark.parametrize("text", [None, "", "Instalação de Drywall", "PR12", "prazo 30 dias"])
def test_extract_pr_code_returns_none_without_a_code(text):
    assert extract_pr_code(text) is None


@pytest.mark.parametrize(
    "name, expected",
    [
        ("PR01724-rev03.pdf", 3),
        ("PR01724 rev.02.pdf", 2),
        ("PR01724_REV_11.pdf", 11),
        ("PR01724 v4.pdf", 4),
        ("PR01724_r7.pdf", 7),
        ("PR01724 Projeto Elétrico.pdf", 0),
    ],
)
def test_extract_revision_number(name, expected):
    assert extract_revision_number(name) == expected

"""Fixtures partagées : petit référentiel de relevés, transactions et factures."""

from datetime import date
from pathlib import Path

import pytest

from lettrage.catalog import Catalog
from lettrage.links import LinkStore
from lettrage.models import Invoice, Statement, Transaction
from lettrage.service import ReconciliationService


def make_transaction(
    tx_id: int,
    amount: float | None = 1000.0,
    tx_date: date | None = date(2024, 1, 15),
    description: str = "PAYMENT ACME SDN BHD INV-001",
    reference: str | None = "INV-001",
    *,
    statement_id: int = 1,
    kind: str = "bank",
    currency: str | None = "MYR",
) -> Transaction:
    return Transaction(
        id=tx_id,
        statement_id=statement_id,
        kind=kind,
        date=tx_date,
        amount=amount,
        description=description,
        reference=reference,
        currency=currency,
    )


def make_invoice(
    inv_id: int,
    invoice_no: str = "INV-001",
    vendor_name: str = "Acme Sdn Bhd",
    invoice_date: date | None = date(2024, 1, 15),
    total: float | None = 1000.0,
    currency: str | None = "MYR",
) -> Invoice:
    return Invoice(
        id=inv_id,
        invoice_no=invoice_no,
        vendor_name=vendor_name,
        invoice_date=invoice_date,
        total=total,
        currency=currency,
    )


@pytest.fixture
def catalog() -> Catalog:
    """
    Relevé bancaire 1 (janvier) : tx 10 (paie INV-001), tx 11 (sans facture).
    Relevé bancaire 2 (juin) : tx 20 (paie INV-003).
    Relevé fournisseur 1 : ligne 100 (INV-001).
    """
    return Catalog(
        statements=[
            Statement(1, "bank", "1234-5678", date(2024, 1, 1), date(2024, 1, 31), "MYR"),
            Statement(2, "bank", "1234-5678", date(2024, 6, 1), date(2024, 6, 30), "MYR"),
            Statement(1, "supplier", "Acme Sdn Bhd", date(2024, 1, 1), date(2024, 1, 31), "MYR"),
        ],
        transactions=[
            make_transaction(10),
            make_transaction(11, 500.0, date(2024, 1, 20), "TRANSFER GLOBEX", None),
            make_transaction(20, 750.0, date(2024, 6, 10), "PAYMENT INITECH INV-003", "INV-003", statement_id=2),
            make_transaction(100, 1000.0, date(2024, 1, 16), "INV-001", "INV-001", kind="supplier"),
        ],
        invoices=[
            make_invoice(1),
            make_invoice(2, "INV-002", "Globex Corp", date(2024, 1, 18), 2000.0),
            make_invoice(3, "INV-003", "Initech", date(2024, 6, 8), 750.0),
        ],
    )


@pytest.fixture
def store(tmp_path: Path, catalog: Catalog) -> LinkStore:
    return LinkStore(tmp_path / "liens.db", catalog)


@pytest.fixture
def service(catalog: Catalog, store: LinkStore) -> ReconciliationService:
    return ReconciliationService(catalog, store)

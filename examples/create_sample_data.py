"""Crée un classeur et une configuration de démonstration pour Lettrage."""

import json
from pathlib import Path

import pandas as pd

DATA_DIR = Path(__file__).parent / "data"
DATA_DIR.mkdir(exist_ok=True)

statements = pd.DataFrame({
    "id": [1, 2, 1],
    "kind": ["bank", "bank", "supplier"],
    "account_number": ["5140-1122-3344", "5140-1122-3344", None],
    "bank_name": ["Maybank", "Maybank", None],
    "supplier_name": [None, None, "Acme Sdn Bhd"],
    "statement_date_from": ["2024-01-01", "2024-02-01", "2024-01-01"],
    "statement_date_to": ["2024-01-31", "2024-02-29", "2024-02-29"],
    "currency": ["MYR", "MYR", "MYR"],
})

transactions = pd.DataFrame({
    "id": [10, 11, 12, 20, 100, 101],
    "kind": ["bank", "bank", "bank", "bank", "supplier", "supplier"],
    "statement_id": [1, 1, 1, 2, 1, 1],
    "transaction_date": ["2024-01-15", "2024-01-22", "2024-01-28", "2024-02-05", "2024-01-16", "2024-02-03"],
    "transaction_type": ["DEBIT", "DEBIT", "CREDIT", "DEBIT", None, None],
    "debit_amount": [1000.00, 2475.50, None, 812.00, None, None],
    "credit_amount": [None, None, 150.00, None, None, None],
    "amount": [None, None, None, None, 1000.00, 2475.50],
    "description": ["IBG PAYMENT ACME INV-2024-001", "TRF GLOBEX CORP", "REFUND", "INITECH PYMT", None, None],
    "merchant_name": ["Acme Sdn Bhd", "Globex Corp", None, "Initech", None, None],
    "reference_number": ["INV-2024-001", None, None, "IN-7781", None, None],
    "invoice_number": [None, None, None, None, "INV-2024-001", "GX-0042"],
    "remarks": [None, None, None, None, "Payment received", "Payment received"],
    "currency": ["MYR"] * 6,
})

invoices = pd.DataFrame({
    "id": [1, 2, 3, 4],
    "invoice_no": ["INV-2024-001", "GX-0042", "IN-7781", "INV-2024-009"],
    "vendor_name": ["Acme Sdn Bhd", "Globex Corp", "Initech", "Acme Sdn Bhd"],
    "invoice_date": ["2024-01-14", "2024-01-20", "2024-02-02", "2024-03-10"],
    "total": [1000.00, 2475.50, 812.00, 320.00],
    "currency": ["MYR", "MYR", "MYR", "MYR"],
})

with pd.ExcelWriter(DATA_DIR / "referentiel.xlsx", engine="openpyxl") as writer:
    statements.to_excel(writer, sheet_name="statements", index=False)
    transactions.to_excel(writer, sheet_name="transactions", index=False)
    invoices.to_excel(writer, sheet_name="invoices", index=False)

config = {
    "database": "lettrage.db",
    "workbook": "referentiel.xlsx",
    "matching": {"date_tolerance_days": 7, "amount_tolerance_percentage": 2.0},
}
(DATA_DIR / "config.json").write_text(json.dumps(config, indent=2), encoding="utf-8")
print(f"Fichiers créés dans {DATA_DIR}")
print(f"Essayer: lettrage -c {DATA_DIR / 'config.json'} match --statement 1 --invoices 1,2,3,4")

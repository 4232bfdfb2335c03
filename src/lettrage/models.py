"""Types de valeur du cœur : relevés, transactions, factures, liens."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from lettrage.config import VALID_MATCH_TYPES, VALID_STATEMENT_KINDS, ValidationError
from lettrage.normalize import optional_str, parse_amount, parse_date, safe_str

# Clé d'identifiant de transaction dans les payloads, selon le type de relevé
TRANSACTION_ID_KEYS = {
    "bank": "bank_transaction_id",
    "supplier": "supplier_statement_line_item_id",
}


def _require_id(d: dict[str, Any], key: str) -> int:
    val = d.get(key)
    if val is None or isinstance(val, bool):
        raise ValidationError(f"{key} requis (entier)", field=key)
    try:
        as_float = float(val)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{key} doit être un entier (got {val!r})", field=key) from e
    if not as_float.is_integer():
        raise ValidationError(f"{key} doit être un entier (got {val!r})", field=key)
    return int(as_float)


def check_kind(kind: str) -> str:
    if kind not in VALID_STATEMENT_KINDS:
        raise ValidationError(
            f"Type de relevé invalide: {kind!r}. Valides: {sorted(VALID_STATEMENT_KINDS)}", field="kind"
        )
    return kind


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d else None


@dataclass(frozen=True)
class RequestContext:
    """Identité de l'appelant, passée explicitement (jamais d'état global)."""

    user_id: int | None = None


@dataclass(frozen=True)
class Statement:
    """Relevé bancaire ou relevé fournisseur (conteneur de transactions)."""

    id: int
    kind: str
    name: str = ""  # banque / numéro de compte, ou nom du fournisseur
    date_from: date | None = None
    date_to: date | None = None
    currency: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any], kind: str) -> Statement:
        check_kind(kind)
        if kind == "bank":
            name = optional_str(d.get("account_number")) or optional_str(d.get("bank_name")) or ""
        else:
            name = optional_str(d.get("supplier_name")) or ""
        return cls(
            id=_require_id(d, "id"),
            kind=kind,
            name=name,
            date_from=parse_date(d.get("statement_date_from")),
            date_to=parse_date(d.get("statement_date_to")),
            currency=(optional_str(d.get("currency")) or "").upper() or None,
        )

    def to_dict(self) -> dict[str, Any]:
        key = "account_number" if self.kind == "bank" else "supplier_name"
        return {
            "id": self.id,
            key: self.name or None,
            "statement_date_from": _iso(self.date_from),
            "statement_date_to": _iso(self.date_to),
        }


@dataclass(frozen=True)
class Transaction:
    """
    Transaction bancaire ou ligne de relevé fournisseur.

    `amount` est toujours positif (valeur absolue) ; le sens est dans `direction`.
    Date et montant peuvent manquer : le score correspondant vaudra alors 0.
    """

    id: int
    statement_id: int
    kind: str
    date: date | None
    amount: float | None
    description: str = ""
    reference: str | None = None
    currency: str | None = None
    direction: str | None = None  # DEBIT / CREDIT (banque)

    @classmethod
    def from_bank_dict(cls, d: dict[str, Any]) -> Transaction:
        """Construit depuis un enregistrement BankTransaction."""
        debit = parse_amount(d.get("debit_amount"))
        credit = parse_amount(d.get("credit_amount"))
        direction = optional_str(d.get("transaction_type"))
        if direction:
            direction = direction.upper()
        if debit:
            amount: float | None = abs(debit)
            direction = direction or "DEBIT"
        elif credit:
            amount = abs(credit)
            direction = direction or "CREDIT"
        else:
            amount = parse_amount(d.get("amount"))
            amount = abs(amount) if amount is not None else None

        description = safe_str(d.get("description")).strip()
        merchant = optional_str(d.get("merchant_name"))
        if merchant and merchant.lower() not in description.lower():
            description = f"{description} {merchant}".strip()

        return cls(
            id=_require_id(d, "id"),
            statement_id=_require_id(d, "bank_statement_id"),
            kind="bank",
            date=parse_date(d.get("transaction_date")),
            amount=amount,
            description=description,
            reference=optional_str(d.get("reference_number")),
            currency=(optional_str(d.get("currency")) or "").upper() or None,
            direction=direction,
        )

    @classmethod
    def from_supplier_dict(cls, d: dict[str, Any]) -> Transaction:
        """Construit depuis un enregistrement SupplierStatementLineItem."""
        amount = parse_amount(d.get("amount"))
        invoice_number = optional_str(d.get("invoice_number"))
        parts = [
            optional_str(d.get("remarks")),
            invoice_number,
            optional_str(d.get("customer_order_no")),
            optional_str(d.get("bill_of_lading_no")),
        ]
        return cls(
            id=_require_id(d, "id"),
            statement_id=_require_id(d, "supplier_statement_id"),
            kind="supplier",
            date=parse_date(d.get("transaction_date")),
            amount=abs(amount) if amount is not None else None,
            description=" ".join(p for p in parts if p),
            reference=invoice_number,
            currency=(optional_str(d.get("currency")) or "").upper() or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "statement_id": self.statement_id,
            "transaction_date": _iso(self.date),
            "amount": self.amount,
            "description": self.description,
            "reference_number": self.reference,
            "currency": self.currency,
            "transaction_type": self.direction,
        }


@dataclass(frozen=True)
class Invoice:
    """Facture candidate (lecture seule pour le moteur)."""

    id: int
    invoice_no: str
    vendor_name: str
    invoice_date: date | None
    total: float | None
    currency: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Invoice:
        return cls(
            id=_require_id(d, "id"),
            invoice_no=safe_str(d.get("invoice_no")).strip(),
            vendor_name=safe_str(d.get("vendor_name")).strip(),
            invoice_date=parse_date(d.get("invoice_date")),
            total=parse_amount(d.get("total")),
            currency=(optional_str(d.get("currency")) or "").upper() or None,
        )

    @property
    def label(self) -> str:
        """Libellé composite comparé à la description des transactions."""
        return f"{self.vendor_name} {self.invoice_no}".strip()

    def summary(self) -> dict[str, Any]:
        """Résumé affiché avec un lien."""
        return {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "vendor_name": self.vendor_name,
            "total": self.total,
        }


@dataclass(frozen=True)
class LinkRequest:
    """Demande de création d'un lien (unitaire ou élément d'un lot)."""

    kind: str
    transaction_id: int
    invoice_id: int
    match_type: str = "manual"
    match_score: float | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any], kind: str | None = None) -> LinkRequest:
        """
        Lit un payload `{bank_transaction_id | supplier_statement_line_item_id, invoice_id, ...}`.

        Le type de relevé est déduit de la clé présente si `kind` n'est pas fourni.
        """
        if not isinstance(d, dict):
            raise ValidationError("Chaque lien doit être un objet JSON", field="links")
        if kind is None:
            present = [k for k, key in TRANSACTION_ID_KEYS.items() if d.get(key) is not None]
            if len(present) != 1:
                raise ValidationError(
                    "Exactement un de bank_transaction_id / supplier_statement_line_item_id requis",
                    field="bank_transaction_id",
                )
            kind = present[0]
        check_kind(kind)

        match_type = d.get("match_type") or "manual"
        if match_type not in VALID_MATCH_TYPES:
            raise ValidationError(
                f"match_type invalide: {match_type!r}. Valides: {sorted(VALID_MATCH_TYPES)}", field="match_type"
            )

        score_raw = d.get("match_score")
        match_score: float | None = None
        if score_raw is not None:
            if isinstance(score_raw, bool):
                raise ValidationError(f"match_score doit être numérique (got {score_raw!r})", field="match_score")
            try:
                match_score = float(score_raw)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"match_score doit être numérique (got {score_raw!r})", field="match_score") from e
            if not 0 <= match_score <= 100:
                raise ValidationError(f"match_score doit être entre 0 et 100 (got {match_score})", field="match_score")

        notes = d.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes doit être une chaîne", field="notes")

        return cls(
            kind=kind,
            transaction_id=_require_id(d, TRANSACTION_ID_KEYS[kind]),
            invoice_id=_require_id(d, "invoice_id"),
            match_type=match_type,
            match_score=match_score,
            notes=notes,
        )


@dataclass
class Link:
    """Lien persistant transaction ↔ facture (rapprochement validé)."""

    id: int
    kind: str
    statement_id: int
    transaction_id: int
    invoice_id: int
    match_type: str
    match_score: float | None = None
    notes: str | None = None
    created_by: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    # Hydratation optionnelle pour l'affichage
    transaction: dict[str, Any] | None = field(default=None, compare=False)
    invoice: dict[str, Any] | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            TRANSACTION_ID_KEYS[self.kind]: self.transaction_id,
            "invoice_id": self.invoice_id,
            "match_type": self.match_type,
            "match_score": self.match_score,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.transaction is not None:
            d["transaction" if self.kind == "bank" else "line_item"] = self.transaction
        if self.invoice is not None:
            d["invoice"] = self.invoice
        return d

"""Frontière requêtes / réponses : validation, matching, cycle de vie des liens."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from lettrage.catalog import Catalog
from lettrage.config import (
    CONFIDENCE_TIERS,
    ConflictError,
    LettrageError,
    MatchOptions,
    NotFoundError,
    ScoringPolicy,
    ValidationError,
)
from lettrage.links import LinkStore
from lettrage.matching.engine import MatchEngine
from lettrage.matching.schema import CrossStatementResult, TransactionMatchResult
from lettrage.models import Link, LinkRequest, RequestContext, check_kind

logger = logging.getLogger(__name__)

# Palier de confiance -> type de lien lors d'une acceptation groupée
TIER_MATCH_TYPES = {"high": "auto", "medium": "manual", "low": "manual"}


@dataclass(frozen=True)
class MatchRequest:
    """Requête de matching validée."""

    invoice_ids: list[int]
    options: MatchOptions
    statement_id: int | None = None  # None = multi-relevés


def _parse_id_list(val: Any, key: str) -> list[int]:
    if not isinstance(val, list):
        raise ValidationError(f"{key} doit être une liste d'entiers", field=key)
    ids: list[int] = []
    for item in val:
        if isinstance(item, bool) or not isinstance(item, (int, float)) or not float(item).is_integer():
            raise ValidationError(f"{key} doit être une liste d'entiers (got {item!r})", field=key)
        ids.append(int(item))
    return ids


def parse_match_request(
    payload: dict[str, Any],
    *,
    defaults: MatchOptions | None = None,
    require_statement: bool = False,
) -> MatchRequest:
    """
    Valide un payload `{invoice_ids, statement_id?, tolérances...}`.

    Une liste invoice_ids vide est acceptée (résultat sans candidat) ; une clé
    absente ou mal typée ne l'est pas.

    Raises:
        ValidationError: Champ manquant, mal typé ou hors bornes.
    """
    if not isinstance(payload, dict):
        raise ValidationError("La requête doit être un objet JSON", field="body")
    if "invoice_ids" not in payload or payload["invoice_ids"] is None:
        raise ValidationError("invoice_ids requis", field="invoice_ids")
    invoice_ids = _parse_id_list(payload["invoice_ids"], "invoice_ids")

    statement_id: int | None = None
    raw_statement = payload.get("statement_id")
    if raw_statement is not None:
        statement_id = _parse_id_list([raw_statement], "statement_id")[0]
    elif require_statement:
        raise ValidationError("statement_id requis", field="statement_id")

    options = MatchOptions.from_dict(payload, defaults)
    return MatchRequest(invoice_ids=invoice_ids, options=options, statement_id=statement_id)


@dataclass
class BulkLinkResult:
    """Résultat d'une création groupée : créés, doublons ignorés, échecs."""

    links: list[Link]
    skipped: list[dict[str, Any]]
    failed: list[dict[str, Any]]

    @property
    def created_count(self) -> int:
        return len(self.links)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created_count": self.created_count,
            "links": [link.to_dict() for link in self.links],
            "skipped_count": len(self.skipped),
            "failed_count": len(self.failed),
            "errors": self.skipped + self.failed,
        }


class ReconciliationService:
    """
    Point d'entrée du lettrage pour un appelant (API, CLI).

    Lit l'état des liens à chaque matching : un lien créé ou supprimé est pris en
    compte dès l'appel suivant.
    """

    def __init__(
        self,
        catalog: Catalog,
        store: LinkStore,
        *,
        policy: ScoringPolicy | None = None,
        defaults: MatchOptions | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.policy = policy or ScoringPolicy()
        self.defaults = defaults or MatchOptions()
        self.engine = MatchEngine(self.policy, max_workers=max_workers)

    # -- matching ---------------------------------------------------------

    def _linked_ids(self, kind: str, options: MatchOptions) -> set[int]:
        return self.store.linked_invoice_ids(kind) if options.exclude_linked else set()

    def match_statement(self, kind: str, request: MatchRequest) -> list[TransactionMatchResult]:
        """
        Matching d'un relevé contre une sélection de factures.

        Raises:
            ValidationError: statement_id absent.
            NotFoundError: Relevé ou facture inconnu.
        """
        check_kind(kind)
        if request.statement_id is None:
            raise ValidationError("statement_id requis", field="statement_id")
        transactions = self.catalog.transactions_for(kind, request.statement_id)
        invoices = self.catalog.invoices(request.invoice_ids)
        return self.engine.match_all(transactions, invoices, request.options, self._linked_ids(kind, request.options))

    def match_across(self, kind: str, request: MatchRequest) -> CrossStatementResult:
        """Matching multi-relevés (tous les relevés du type dont la période est compatible)."""
        check_kind(kind)
        invoices = self.catalog.invoices(request.invoice_ids)
        statements = [(s, self.catalog.transactions_for(kind, s.id)) for s in self.catalog.statements(kind)]
        return self.engine.match_across_statements(
            statements, invoices, request.options, self._linked_ids(kind, request.options)
        )

    def match_invoices(self, payload: dict[str, Any], kind: str = "bank") -> dict[str, Any]:
        """Réponse `{statement_id, transactions: [...]}` du matching d'un relevé."""
        request = parse_match_request(payload, defaults=self.defaults, require_statement=True)
        results = self.match_statement(kind, request)
        return {
            "statement_id": request.statement_id,
            "transactions": [r.to_dict() for r in results],
        }

    def match_invoices_across_statements(self, payload: dict[str, Any], kind: str = "bank") -> dict[str, Any]:
        """Réponse agrégée `{total_invoices, matched_invoices, ...}` du matching multi-relevés."""
        request = parse_match_request(payload, defaults=self.defaults)
        return self.match_across(kind, request).to_dict()

    # -- liens ------------------------------------------------------------

    def create_link(
        self,
        payload: dict[str, Any],
        kind: str | None = None,
        context: RequestContext | None = None,
    ) -> dict[str, Any]:
        """
        Crée un lien unitaire.

        Raises:
            ValidationError, NotFoundError, ConflictError
        """
        request = LinkRequest.from_dict(payload, kind)
        return self.store.create_link(request, context).to_dict()

    def create_links(
        self,
        requests: Iterable[LinkRequest | dict[str, Any]],
        kind: str | None = None,
        context: RequestContext | None = None,
    ) -> BulkLinkResult:
        """
        Crée des liens un par un, sans interrompre le lot sur un échec.

        Un doublon (ConflictError) est compté comme ignoré ; un id inconnu ou un
        élément invalide comme échec.
        """
        created: list[Link] = []
        skipped: list[dict[str, Any]] = []
        failed: list[dict[str, Any]] = []
        for index, item in enumerate(requests):
            try:
                request = item if isinstance(item, LinkRequest) else LinkRequest.from_dict(item, kind)
                created.append(self.store.create_link(request, context))
            except ConflictError as e:
                skipped.append({"index": index, "reason": "duplicate", "message": str(e)})
            except NotFoundError as e:
                failed.append({"index": index, "reason": "not_found", "message": str(e)})
            except ValidationError as e:
                failed.append({"index": index, "reason": "invalid", "field": e.field, "message": str(e)})

        if skipped or failed:
            logger.warning(
                "Création groupée: %d créé(s), %d doublon(s) ignoré(s), %d échec(s)",
                len(created),
                len(skipped),
                len(failed),
            )
        return BulkLinkResult(links=created, skipped=skipped, failed=failed)

    def create_links_bulk(
        self,
        payload: dict[str, Any],
        kind: str | None = None,
        context: RequestContext | None = None,
    ) -> dict[str, Any]:
        """Réponse `{created_count, links, ...}` d'une requête `{links: [...]}`."""
        if not isinstance(payload, dict) or not isinstance(payload.get("links"), list):
            raise ValidationError("links requis (liste)", field="links")
        return self.create_links(payload["links"], kind, context).to_dict()

    def accept_matches(
        self,
        kind: str,
        results: list[TransactionMatchResult],
        tiers: Iterable[str] = ("high", "medium"),
        context: RequestContext | None = None,
    ) -> BulkLinkResult:
        """
        Accepte en lot les candidats des paliers demandés.

        high → lien "auto", medium/low → lien "manual".
        """
        check_kind(kind)
        wanted = set(tiers)
        unknown = wanted - set(CONFIDENCE_TIERS)
        if unknown:
            raise ValidationError(f"Palier(s) de confiance inconnu(s): {sorted(unknown)}", field="tiers")

        requests = [
            LinkRequest(
                kind=kind,
                transaction_id=r.transaction_id,
                invoice_id=c.invoice.id,
                match_type=TIER_MATCH_TYPES[c.confidence],
                match_score=round(c.match_score, 2),
            )
            for r in results
            for c in r.matches
            if c.confidence in wanted
        ]
        return self.create_links(requests, kind, context)

    def _hydrate(self, link: Link) -> Link:
        try:
            link.transaction = self.catalog.transaction(link.kind, link.transaction_id).to_dict()
        except NotFoundError:
            link.transaction = None
        try:
            link.invoice = self.catalog.invoice(link.invoice_id).summary()
        except NotFoundError:
            link.invoice = None
        return link

    def list_links_for_statement(self, statement_id: int, kind: str = "bank", *, hydrate: bool = True) -> list[dict[str, Any]]:
        links = self.store.list_for_statement(kind, statement_id)
        return [(self._hydrate(link) if hydrate else link).to_dict() for link in links]

    def list_links_for_invoice(
        self, invoice_id: int, kind: str | None = None, *, hydrate: bool = True
    ) -> list[dict[str, Any]]:
        links = self.store.list_for_invoice(invoice_id, kind)
        return [(self._hydrate(link) if hydrate else link).to_dict() for link in links]

    def delete_link(self, link_id: int, *, missing_ok: bool = False) -> bool:
        """
        Supprime un lien ; False si absent avec missing_ok.

        Raises:
            NotFoundError: Lien absent (sauf missing_ok).
        """
        return self.store.delete_link(link_id, missing_ok=missing_ok)


def error_payload(error: LettrageError) -> dict[str, Any]:
    """Corps d'erreur pour un transport (4xx) : type, message et champ éventuel."""
    d: dict[str, Any] = {"success": False, "error": type(error).__name__, "message": str(error)}
    if isinstance(error, ValidationError) and error.field:
        d["field"] = error.field
    return d

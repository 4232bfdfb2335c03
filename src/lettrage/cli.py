"""Interface en ligne de commande Lettrage."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from lettrage import __version__
from lettrage.config import Config, LettrageError, ValidationError
from lettrage.io_excel import list_sheets, load_catalog, save_xlsx
from lettrage.links import LinkStore
from lettrage.matching.schema import TransactionMatchResult
from lettrage.models import RequestContext
from lettrage.report import build_matches_df, build_report_df, print_report_console
from lettrage.service import ReconciliationService, parse_match_request

logger = logging.getLogger(__name__)


def _parse_ids(value: str, field: str) -> list[int]:
    """Liste d'ids "1,2, 3" -> [1, 2, 3]."""
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        raise ValidationError(f"--{field}: liste d'entiers séparés par des virgules attendue (got {value!r})", field=field) from e


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def build_service(config: Config) -> ReconciliationService:
    """Charge le référentiel du classeur et ouvre la base des liens."""
    if not config.workbook:
        raise ValidationError("workbook requis dans la configuration", field="workbook")
    catalog = load_catalog(config.workbook)
    store = LinkStore(config.database, catalog)
    return ReconciliationService(
        catalog,
        store,
        policy=config.scoring,
        defaults=config.matching,
        max_workers=config.max_workers,
    )


def _match_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {"invoice_ids": _parse_ids(args.invoices, "invoices")}
    if getattr(args, "statement", None) is not None:
        payload["statement_id"] = args.statement
    if args.date_tolerance is not None:
        payload["date_tolerance_days"] = args.date_tolerance
    if args.amount_tolerance is not None:
        payload["amount_tolerance_percentage"] = args.amount_tolerance
    if args.currency_tolerance is not None:
        payload["currency_tolerance_percentage"] = args.currency_tolerance
    if args.min_score is not None:
        payload["min_match_score"] = args.min_score
    if args.include_linked:
        payload["exclude_linked"] = False
    return payload


def print_matches_console(results: list[TransactionMatchResult]) -> None:
    """Affiche les candidats de chaque transaction (meilleur en premier)."""
    for r in results:
        tx = r.transaction
        amount = f"{tx.amount:.2f}" if tx.amount is not None else "-"
        print(f"Transaction #{tx.id}  {tx.date or '-'}  {amount}  {tx.description}")
        if not r.matches:
            print("    (aucun candidat)")
        for c in r.matches:
            print(
                f"    facture #{c.invoice.id} {c.invoice.label}  score={c.match_score:.1f}  [{c.confidence}]"
            )


def cmd_list_sheets(filepath: str) -> int:
    """Liste les feuilles d'un classeur."""
    sheets = list_sheets(filepath)
    print(f"Feuilles dans {filepath}:")
    for s in sheets:
        print(f"  - {s}")
    return 0


def cmd_match(service: ReconciliationService, args: argparse.Namespace) -> int:
    """Matching d'un relevé ; export xlsx (Matches + REPORT) si --output."""
    request = parse_match_request(_match_payload(args), defaults=service.defaults, require_statement=True)
    results = service.match_statement(args.kind, request)

    if args.json:
        _print_json({"statement_id": request.statement_id, "transactions": [r.to_dict() for r in results]})
    else:
        print_matches_console(results)
        print_report_console(results)

    if args.output:
        sheets = {
            "Matches": build_matches_df(results),
            "REPORT": build_report_df(results, request.options, service.policy),
        }
        save_xlsx(args.output, sheets)
        print(f"Fichier de sortie: {args.output}")
    return 0


def cmd_match_all(service: ReconciliationService, args: argparse.Namespace) -> int:
    """Matching multi-relevés."""
    request = parse_match_request(_match_payload(args), defaults=service.defaults)
    result = service.match_across(args.kind, request)

    if args.json:
        _print_json(result.to_dict())
        return 0
    print(f"Relevés parcourus: {result.statements_searched}")
    print(f"Factures trouvées: {result.matched_invoices}/{result.total_invoices}")
    for summary in result.statement_matches:
        print(
            f"  Relevé #{summary.statement.id} {summary.statement.name}: "
            f"{summary.matched_transactions}/{len(summary.results)} transaction(s) avec candidat"
        )
    return 0


def cmd_accept(service: ReconciliationService, args: argparse.Namespace) -> int:
    """Accepte en lot les candidats des paliers demandés."""
    request = parse_match_request(_match_payload(args), defaults=service.defaults, require_statement=True)
    results = service.match_statement(args.kind, request)
    tiers = [t.strip() for t in args.tiers.split(",") if t.strip()]
    bulk = service.accept_matches(args.kind, results, tiers, RequestContext(user_id=args.user))

    if args.json:
        _print_json(bulk.to_dict())
        return 0
    print(f"Liens créés: {bulk.created_count}")
    if bulk.skipped:
        print(f"Doublons ignorés: {len(bulk.skipped)}")
    for err in bulk.failed:
        print(f"Échec élément {err['index']}: {err['message']}")
    return 0


def cmd_link(service: ReconciliationService, args: argparse.Namespace) -> int:
    """Crée un lien unitaire."""
    payload: dict[str, Any] = {
        "bank_transaction_id" if args.kind == "bank" else "supplier_statement_line_item_id": args.transaction,
        "invoice_id": args.invoice,
        "match_type": args.match_type,
        "match_score": args.score,
        "notes": args.notes,
    }
    link = service.create_link(payload, args.kind, RequestContext(user_id=args.user))
    if args.json:
        _print_json(link)
    else:
        print(f"Lien #{link['id']} créé")
    return 0


def cmd_links(service: ReconciliationService, args: argparse.Namespace) -> int:
    """Liste les liens d'un relevé ou d'une facture."""
    if args.statement is not None:
        links = service.list_links_for_statement(args.statement, args.kind)
    else:
        links = service.list_links_for_invoice(args.invoice, args.kind)

    if args.json:
        _print_json(links)
        return 0
    if not links:
        print("Aucun lien.")
    id_key = "bank_transaction_id" if args.kind == "bank" else "supplier_statement_line_item_id"
    for link in links:
        tx_id = link.get(id_key)
        invoice = link.get("invoice") or {}
        score = link["match_score"]
        print(
            f"  #{link['id']}  transaction {tx_id} ↔ facture #{link['invoice_id']} "
            f"{invoice.get('invoice_no', '')}  [{link['match_type']}]"
            + (f"  score={score:.1f}" if score is not None else "")
        )
    return 0


def cmd_unlink(service: ReconciliationService, args: argparse.Namespace) -> int:
    if service.delete_link(args.link_id, missing_ok=args.missing_ok):
        print(f"Lien #{args.link_id} supprimé")
    else:
        print(f"Lien #{args.link_id} absent, rien à supprimer")
    return 0


def _add_match_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--invoices", required=True, help="Ids de factures séparés par des virgules")
    p.add_argument("--kind", choices=["bank", "supplier"], default="bank", help="Type de relevé")
    p.add_argument("--date-tolerance", type=int, help="Tolérance de date (jours)")
    p.add_argument("--amount-tolerance", type=float, help="Tolérance de montant (%%)")
    p.add_argument("--currency-tolerance", type=float, help="Tolérance de montant après conversion de devise (%%)")
    p.add_argument("--min-score", type=float, help="Score minimum (0-100)")
    p.add_argument("--include-linked", action="store_true", help="Inclure les factures déjà liées")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="lettrage",
        description="Rapprochement de relevés bancaires / fournisseurs et de factures",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", "-c", help="Fichier config JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Journalisation détaillée (DEBUG)")
    parser.add_argument("--json", action="store_true", help="Sortie JSON")

    subparsers = parser.add_subparsers(dest="command", help="Commandes")

    p_list = subparsers.add_parser("list-sheets", help="Lister les feuilles d'un classeur")
    p_list.add_argument("file", help="Fichier xlsx")

    p_match = subparsers.add_parser("match", help="Matching d'un relevé")
    p_match.add_argument("--statement", type=int, required=True, help="Id du relevé")
    _add_match_options(p_match)
    p_match.add_argument("--output", "-o", help="Fichier xlsx de sortie (Matches + REPORT)")

    p_all = subparsers.add_parser("match-all", help="Matching sur tous les relevés pertinents")
    _add_match_options(p_all)

    p_accept = subparsers.add_parser("accept", help="Accepter en lot par palier de confiance")
    p_accept.add_argument("--statement", type=int, required=True, help="Id du relevé")
    _add_match_options(p_accept)
    p_accept.add_argument("--tiers", default="high,medium", help="Paliers acceptés (high,medium,low)")
    p_accept.add_argument("--user", type=int, help="Id utilisateur (created_by)")

    p_link = subparsers.add_parser("link", help="Créer un lien transaction ↔ facture")
    p_link.add_argument("--transaction", type=int, required=True, help="Id de transaction / ligne de relevé")
    p_link.add_argument("--invoice", type=int, required=True, help="Id de facture")
    p_link.add_argument("--kind", choices=["bank", "supplier"], default="bank", help="Type de relevé")
    p_link.add_argument("--match-type", choices=["auto", "manual"], default="manual")
    p_link.add_argument("--score", type=float, help="Score de matching (0-100)")
    p_link.add_argument("--notes", help="Commentaire")
    p_link.add_argument("--user", type=int, help="Id utilisateur (created_by)")

    p_links = subparsers.add_parser("links", help="Lister les liens")
    target = p_links.add_mutually_exclusive_group(required=True)
    target.add_argument("--statement", type=int, help="Id du relevé")
    target.add_argument("--invoice", type=int, help="Id de facture")
    p_links.add_argument("--kind", choices=["bank", "supplier"], default="bank", help="Type de relevé")

    p_unlink = subparsers.add_parser("unlink", help="Supprimer un lien")
    p_unlink.add_argument("link_id", type=int, help="Id du lien")
    p_unlink.add_argument("--missing-ok", action="store_true", help="Pas d'erreur si le lien n'existe pas")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "match": cmd_match,
        "match-all": cmd_match_all,
        "accept": cmd_accept,
        "link": cmd_link,
        "links": cmd_links,
        "unlink": cmd_unlink,
    }

    try:
        if args.command == "list-sheets":
            return cmd_list_sheets(args.file)
        if args.command in commands:
            if not args.config:
                parser.error("--config requis pour cette commande")
            service = build_service(Config.load(args.config))
            return commands[args.command](service, args)
    except LettrageError as e:
        logger.debug("Commande %s en échec", args.command, exc_info=True)
        print(f"Erreur: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Persistance des liens transaction ↔ facture (SQLite)."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from lettrage.catalog import Catalog
from lettrage.config import ConflictError, LettrageError, NotFoundError
from lettrage.models import Link, LinkRequest, RequestContext, check_kind

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS links (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  statement_kind TEXT NOT NULL,
  statement_id INTEGER NOT NULL,
  transaction_id INTEGER NOT NULL,
  invoice_id INTEGER NOT NULL,
  match_type TEXT NOT NULL,
  match_score REAL,
  notes TEXT,
  created_by INTEGER,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  UNIQUE (statement_kind, transaction_id, invoice_id)
);
CREATE INDEX IF NOT EXISTS idx_links_statement ON links (statement_kind, statement_id);
CREATE INDEX IF NOT EXISTS idx_links_invoice ON links (invoice_id);
"""

_COLUMNS = (
    "id, statement_kind, statement_id, transaction_id, invoice_id, "
    "match_type, match_score, notes, created_by, created_at, updated_at"
)


class LinkStoreError(LettrageError):
    """Erreur d'accès à la base des liens."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_link(row: tuple) -> Link:
    return Link(
        id=row[0],
        kind=row[1],
        statement_id=row[2],
        transaction_id=row[3],
        invoice_id=row[4],
        match_type=row[5],
        match_score=row[6],
        notes=row[7],
        created_by=row[8],
        created_at=row[9],
        updated_at=row[10],
    )


class LinkStore:
    """
    Liens persistants, idempotents à la création.

    Chaque opération ouvre sa propre connexion : plusieurs appelants concurrents
    (threads ou processus) peuvent partager le même fichier. L'unicité du couple
    (transaction, facture) est garantie par la contrainte UNIQUE de la table, pas
    par une vérification préalable.
    """

    def __init__(self, db_path: str | Path, catalog: Catalog, *, timeout: float = 30.0) -> None:
        self.db_path = str(db_path)
        self.catalog = catalog
        self.timeout = timeout
        self.init_db()

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        try:
            con = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise LinkStoreError(f"Impossible d'ouvrir la base {self.db_path}: {e}") from e
        try:
            con.execute("PRAGMA journal_mode=WAL;")
            yield con
            con.commit()
        except Exception:
            con.rollback()
            raise
        finally:
            con.close()

    def init_db(self) -> None:
        with self._conn() as con:
            con.executescript(_SCHEMA)

    def create_link(self, request: LinkRequest, context: RequestContext | None = None) -> Link:
        """
        Crée un lien transaction ↔ facture.

        Raises:
            NotFoundError: Transaction ou facture inconnue.
            ConflictError: Le même couple est déjà lié.
        """
        check_kind(request.kind)
        transaction = self.catalog.transaction(request.kind, request.transaction_id)
        self.catalog.invoice(request.invoice_id)
        context = context or RequestContext()

        now = _now()
        try:
            with self._conn() as con:
                cur = con.execute(
                    "INSERT INTO links(statement_kind, statement_id, transaction_id, invoice_id, match_type, "
                    "match_score, notes, created_by, created_at, updated_at) VALUES (?,?,?,?,?,?,?,?,?,?)",
                    (
                        request.kind,
                        transaction.statement_id,
                        request.transaction_id,
                        request.invoice_id,
                        request.match_type,
                        request.match_score,
                        request.notes,
                        context.user_id,
                        now,
                        now,
                    ),
                )
                link_id = cur.lastrowid
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Lien déjà existant: transaction {request.kind} #{request.transaction_id} "
                f"↔ facture #{request.invoice_id}"
            ) from e
        except sqlite3.Error as e:
            raise LinkStoreError(f"Erreur base de données: {e}") from e

        logger.info(
            "Lien #%s créé: %s transaction %s ↔ facture %s (%s)",
            link_id,
            request.kind,
            request.transaction_id,
            request.invoice_id,
            request.match_type,
        )
        return self.get_link(int(link_id))  # type: ignore[arg-type]

    def get_link(self, link_id: int) -> Link:
        with self._conn() as con:
            row = con.execute(f"SELECT {_COLUMNS} FROM links WHERE id=?", (link_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Lien #{link_id} introuvable")
        return _row_to_link(row)

    def find_link(self, kind: str, transaction_id: int, invoice_id: int) -> Link | None:
        """Lien existant pour un couple, ou None."""
        with self._conn() as con:
            row = con.execute(
                f"SELECT {_COLUMNS} FROM links WHERE statement_kind=? AND transaction_id=? AND invoice_id=?",
                (kind, transaction_id, invoice_id),
            ).fetchone()
        return _row_to_link(row) if row else None

    def list_for_statement(self, kind: str, statement_id: int) -> list[Link]:
        """
        Liens d'un relevé, par id croissant.

        Raises:
            NotFoundError: Relevé inconnu.
        """
        self.catalog.statement(kind, statement_id)
        with self._conn() as con:
            rows = con.execute(
                f"SELECT {_COLUMNS} FROM links WHERE statement_kind=? AND statement_id=? ORDER BY id",
                (kind, statement_id),
            ).fetchall()
        return [_row_to_link(r) for r in rows]

    def list_for_invoice(self, invoice_id: int, kind: str | None = None) -> list[Link]:
        """Liens d'une facture (tous types de relevé si kind est None)."""
        self.catalog.invoice(invoice_id)
        query = f"SELECT {_COLUMNS} FROM links WHERE invoice_id=?"
        params: tuple = (invoice_id,)
        if kind is not None:
            check_kind(kind)
            query += " AND statement_kind=?"
            params = (invoice_id, kind)
        with self._conn() as con:
            rows = con.execute(query + " ORDER BY id", params).fetchall()
        return [_row_to_link(r) for r in rows]

    def linked_invoice_ids(self, kind: str | None = None) -> set[int]:
        """Factures ayant au moins un lien (relu à chaque appel, sans cache)."""
        with self._conn() as con:
            if kind is None:
                rows = con.execute("SELECT DISTINCT invoice_id FROM links").fetchall()
            else:
                rows = con.execute(
                    "SELECT DISTINCT invoice_id FROM links WHERE statement_kind=?", (kind,)
                ).fetchall()
        return {r[0] for r in rows}

    def delete_link(self, link_id: int, *, missing_ok: bool = False) -> bool:
        """
        Supprime un lien.

        Returns:
            True si un lien a été supprimé.

        Raises:
            NotFoundError: Lien absent et missing_ok=False.
        """
        with self._conn() as con:
            cur = con.execute("DELETE FROM links WHERE id=?", (link_id,))
            deleted = cur.rowcount > 0
        if not deleted:
            if missing_ok:
                return False
            raise NotFoundError(f"Lien #{link_id} introuvable")
        logger.info("Lien #%s supprimé", link_id)
        return True

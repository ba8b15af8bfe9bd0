"""
Repository pattern for data access.

Declares the persistence contracts the billing core depends on and the
SQLite implementation behind them.
"""

import dataclasses
from abc import ABC, abstractmethod
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from .db import DEFAULT_DB_PATH, get_connection
from .models import CustomerInvoiceTemplate, InvoiceTemplate
from warehouse_billing.core.catalog import (
    RATE_QUANTUM,
    AccessorialType,
    Charge,
    ChargeCategory,
)
from warehouse_billing.core.errors import RateSheetNotFound, TemplateNotFound
from warehouse_billing.core.invoice import Invoice, InvoiceLine, InvoiceStatus
from warehouse_billing.core.rate_sheet import RateSheet, Warehouse


class RateSheetRepository(ABC):
    """Persistence contract for the rate sheet aggregate."""

    @abstractmethod
    def load_rate_sheet_by_id(self, rate_sheet_id: int) -> Optional[RateSheet]:
        """Load a whole aggregate, or None if the id is unknown."""

    @abstractmethod
    def load_rate_sheets_by_customer_and_warehouse_set(
        self,
        customer_id: str,
        customer_name: Optional[str],
        warehouse_ids: Iterable[str],
    ) -> List[RateSheet]:
        """Sheets of a customer that contain every requested warehouse id.

        A blank or None customer_name does not filter by name.
        """

    @abstractmethod
    def save_rate_sheet(self, rate_sheet: RateSheet) -> RateSheet:
        """Upsert the aggregate with its warehouses and charges atomically."""


class InvoiceRepository(ABC):
    """Persistence contract for FINAL invoices."""

    @abstractmethod
    def save_invoice(self, invoice: Invoice) -> Invoice:
        """Persist a FINAL invoice and return it with its assigned id."""

    @abstractmethod
    def load_invoice(self, invoice_id: int) -> Optional[Invoice]:
        """Load a persisted invoice, or None if the id is unknown."""


class BillingRepository(RateSheetRepository, InvoiceRepository):
    """SQLite-backed repository for rate sheets, invoices and templates.

    Every public method opens its own connection, so one instance can be
    shared between requests.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    # Rate sheets

    def load_rate_sheet_by_id(self, rate_sheet_id: int) -> Optional[RateSheet]:
        conn = get_connection(self.db_path)
        try:
            return _load_rate_sheet(conn, rate_sheet_id)
        finally:
            conn.close()

    def load_rate_sheets_by_customer_and_warehouse_set(
        self,
        customer_id: str,
        customer_name: Optional[str],
        warehouse_ids: Iterable[str],
    ) -> List[RateSheet]:
        ids = sorted(set(warehouse_ids))
        if not ids:
            return []

        conn = get_connection(self.db_path)
        try:
            placeholders = ", ".join("?" for _ in ids)
            query = f"""
                SELECT rs.id
                FROM rate_sheet rs
                JOIN warehouse w ON w.rate_sheet_id = rs.id
                WHERE rs.customer_id = ?
                  AND w.warehouse_id IN ({placeholders})
                  AND (? IS NULL OR ? = '' OR rs.name = ?)
                GROUP BY rs.id
                HAVING COUNT(DISTINCT w.warehouse_id) = ?
                ORDER BY rs.id
            """
            params = [customer_id, *ids, customer_name, customer_name, customer_name, len(ids)]
            cursor = conn.execute(query, params)
            return [_load_rate_sheet(conn, row[0]) for row in cursor.fetchall()]
        finally:
            conn.close()

    def save_rate_sheet(self, rate_sheet: RateSheet) -> RateSheet:
        """Upsert a rate sheet with its warehouses and charges in one transaction.

        Warehouse rows are matched by business key: retained warehouses keep
        their row, pruned ones are deleted (their charges cascade), new ones
        are inserted. Every charge row is rewritten.

        Args:
            rate_sheet: Aggregate to persist

        Returns:
            The aggregate as stored, with identities assigned

        Raises:
            ValidationError: If the aggregate breaks an invariant
            RateSheetNotFound: If rate_sheet.id refers to no stored sheet
        """
        rate_sheet.validate()

        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN TRANSACTION")
            if rate_sheet.id is None:
                cursor = conn.execute(
                    "INSERT INTO rate_sheet (customer_id, name) VALUES (?, ?)",
                    (rate_sheet.customer_id, rate_sheet.name)
                )
                rate_sheet_id = cursor.lastrowid
            else:
                rate_sheet_id = rate_sheet.id
                cursor = conn.execute(
                    "UPDATE rate_sheet SET customer_id = ?, name = ? WHERE id = ?",
                    (rate_sheet.customer_id, rate_sheet.name, rate_sheet_id)
                )
                if cursor.rowcount == 0:
                    raise RateSheetNotFound(rate_sheet_id)

            stored: Dict[str, int] = {
                row[1]: row[0] for row in conn.execute(
                    "SELECT id, warehouse_id FROM warehouse WHERE rate_sheet_id = ?",
                    (rate_sheet_id,)
                )
            }
            wanted = set(rate_sheet.warehouse_ids)
            for warehouse_id, pk in stored.items():
                if warehouse_id not in wanted:
                    conn.execute("DELETE FROM warehouse WHERE id = ?", (pk,))

            for position, warehouse in enumerate(rate_sheet.warehouses):
                pk = stored.get(warehouse.warehouse_id)
                if pk is None:
                    cursor = conn.execute(
                        "INSERT INTO warehouse (rate_sheet_id, warehouse_id, position) VALUES (?, ?, ?)",
                        (rate_sheet_id, warehouse.warehouse_id, position)
                    )
                    pk = cursor.lastrowid
                else:
                    conn.execute("UPDATE warehouse SET position = ? WHERE id = ?", (position, pk))
                    conn.execute("DELETE FROM charge WHERE warehouse_pk = ?", (pk,))

                for charge_position, charge in enumerate(warehouse.charges):
                    conn.execute("""
                        INSERT INTO charge
                        (warehouse_pk, position, category, type, rate, unit, accessorial_type)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                    """, (
                        pk,
                        charge_position,
                        charge.category.value,
                        charge.type,
                        str(Decimal(charge.rate).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)),
                        charge.unit,
                        charge.accessorial_type.value if charge.accessorial_type else None
                    ))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        return self.load_rate_sheet_by_id(rate_sheet_id)

    # Invoices

    def save_invoice(self, invoice: Invoice) -> Invoice:
        """Persist a FINAL invoice with its lines atomically.

        Persisted invoices are immutable: there is no update path.

        Raises:
            ValueError: If the invoice is a PREVIEW or already has an id
        """
        if invoice.is_preview:
            raise ValueError("PREVIEW invoices are never persisted")
        if invoice.id is not None:
            raise ValueError(f"Invoice {invoice.id} is already persisted and immutable")

        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN TRANSACTION")
            cursor = conn.execute("""
                INSERT INTO invoice
                (rate_sheet_id, customer_id, warehouse_id, period_start, period_end,
                 status, total_amount)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                invoice.rate_sheet_id,
                invoice.customer_id,
                invoice.warehouse_id,
                invoice.period_start.isoformat(),
                invoice.period_end.isoformat(),
                invoice.status.value,
                str(invoice.total_amount)
            ))
            invoice_id = cursor.lastrowid
            for position, line in enumerate(invoice.lines):
                conn.execute("""
                    INSERT INTO invoice_line
                    (invoice_id, position, description, quantity, rate, amount)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    invoice_id,
                    position,
                    line.description,
                    str(line.quantity),
                    str(line.rate),
                    str(line.amount)
                ))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        return dataclasses.replace(invoice, id=invoice_id)

    def load_invoice(self, invoice_id: int) -> Optional[Invoice]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("""
                SELECT id, rate_sheet_id, customer_id, warehouse_id, period_start,
                       period_end, status, total_amount
                FROM invoice WHERE id = ?
            """, (invoice_id,)).fetchone()
            if row is None:
                return None

            lines = tuple(
                InvoiceLine(
                    description=line[0],
                    quantity=Decimal(line[1]),
                    rate=Decimal(line[2]),
                    amount=Decimal(line[3])
                )
                for line in conn.execute("""
                    SELECT description, quantity, rate, amount
                    FROM invoice_line WHERE invoice_id = ? ORDER BY position
                """, (invoice_id,))
            )
            return Invoice(
                id=row[0],
                rate_sheet_id=row[1],
                customer_id=row[2],
                warehouse_id=row[3],
                period_start=date.fromisoformat(row[4]),
                period_end=date.fromisoformat(row[5]),
                status=InvoiceStatus(row[6]),
                total_amount=Decimal(row[7]),
                lines=lines
            )
        finally:
            conn.close()

    # Invoice templates

    def create_template(self, template: InvoiceTemplate) -> InvoiceTemplate:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "INSERT INTO invoice_template (name, file_path, is_active) VALUES (?, ?, ?)",
                (template.name, template.file_path, int(template.is_active))
            )
            conn.commit()
            return dataclasses.replace(template, id=cursor.lastrowid)
        finally:
            conn.close()

    def list_templates(self, active_only: bool = False) -> List[InvoiceTemplate]:
        conn = get_connection(self.db_path)
        try:
            query = "SELECT id, name, file_path, is_active FROM invoice_template"
            if active_only:
                query += " WHERE is_active = 1"
            query += " ORDER BY id"
            return [
                InvoiceTemplate(id=row[0], name=row[1], file_path=row[2], is_active=bool(row[3]))
                for row in conn.execute(query)
            ]
        finally:
            conn.close()

    def assign_template(
        self,
        customer_id: str,
        template_id: int,
        effective_from: date,
        effective_to: Optional[date] = None
    ) -> CustomerInvoiceTemplate:
        """Record that a customer uses a template from effective_from on.

        Raises:
            TemplateNotFound: If template_id is unknown
        """
        conn = get_connection(self.db_path)
        try:
            exists = conn.execute(
                "SELECT 1 FROM invoice_template WHERE id = ?", (template_id,)
            ).fetchone()
            if exists is None:
                raise TemplateNotFound(
                    f"Invoice template not found: {template_id}", template_id=template_id
                )
            cursor = conn.execute("""
                INSERT INTO customer_invoice_template
                (customer_id, template_id, effective_from, effective_to)
                VALUES (?, ?, ?, ?)
            """, (
                customer_id,
                template_id,
                effective_from.isoformat(),
                effective_to.isoformat() if effective_to else None
            ))
            conn.commit()
            return CustomerInvoiceTemplate(
                id=cursor.lastrowid,
                customer_id=customer_id,
                template_id=template_id,
                effective_from=effective_from,
                effective_to=effective_to
            )
        finally:
            conn.close()

    def customer_assignments(self, customer_id: str) -> List[CustomerInvoiceTemplate]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, customer_id, template_id, effective_from, effective_to
                FROM customer_invoice_template
                WHERE customer_id = ?
                ORDER BY effective_from DESC, id DESC
            """, (customer_id,))
            return [
                CustomerInvoiceTemplate(
                    id=row[0],
                    customer_id=row[1],
                    template_id=row[2],
                    effective_from=date.fromisoformat(row[3]) if row[3] else None,
                    effective_to=date.fromisoformat(row[4]) if row[4] else None
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()


def _load_rate_sheet(conn, rate_sheet_id: int) -> Optional[RateSheet]:
    row = conn.execute(
        "SELECT id, customer_id, name FROM rate_sheet WHERE id = ?", (rate_sheet_id,)
    ).fetchone()
    if row is None:
        return None

    warehouses = []
    for wh_row in conn.execute(
        "SELECT id, warehouse_id FROM warehouse WHERE rate_sheet_id = ? ORDER BY position",
        (rate_sheet_id,)
    ).fetchall():
        charges = [
            Charge(
                id=ch[0],
                category=ChargeCategory(ch[1]),
                type=ch[2],
                rate=Decimal(ch[3]),
                unit=ch[4],
                accessorial_type=AccessorialType(ch[5]) if ch[5] else None
            )
            for ch in conn.execute("""
                SELECT id, category, type, rate, unit, accessorial_type
                FROM charge WHERE warehouse_pk = ? ORDER BY position
            """, (wh_row[0],))
        ]
        warehouses.append(Warehouse(id=wh_row[0], warehouse_id=wh_row[1], charges=charges))

    return RateSheet(id=row[0], customer_id=row[1], name=row[2], warehouses=warehouses)


# Global repository instance
_default_repository: Optional[BillingRepository] = None


def get_repository(db_path: str = DEFAULT_DB_PATH) -> BillingRepository:
    """Get a repository instance.

    Returns a shared BillingRepository, replacing it when a different
    database path is requested.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of BillingRepository
    """
    global _default_repository
    if _default_repository is None or _default_repository.db_path != db_path:
        _default_repository = BillingRepository(db_path)
    return _default_repository


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the billing tables if they don't exist.

    Ownership is expressed with ON DELETE CASCADE: deleting a rate sheet
    deletes its warehouses, deleting a warehouse deletes its charges and
    deleting an invoice deletes its lines.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS rate_sheet (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                customer_id TEXT NOT NULL,
                name TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS warehouse (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                rate_sheet_id INTEGER NOT NULL
                    REFERENCES rate_sheet(id) ON DELETE CASCADE,
                warehouse_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                UNIQUE (rate_sheet_id, warehouse_id)
            );
            CREATE TABLE IF NOT EXISTS charge (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                warehouse_pk INTEGER NOT NULL
                    REFERENCES warehouse(id) ON DELETE CASCADE,
                position INTEGER NOT NULL,
                category TEXT NOT NULL,
                type TEXT,
                rate TEXT NOT NULL,
                unit TEXT NOT NULL,
                accessorial_type TEXT
            );
            CREATE TABLE IF NOT EXISTS invoice (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                rate_sheet_id INTEGER,
                customer_id TEXT NOT NULL,
                warehouse_id TEXT NOT NULL,
                period_start TEXT NOT NULL,
                period_end TEXT NOT NULL,
                status TEXT NOT NULL,
                total_amount TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS invoice_line (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                invoice_id INTEGER NOT NULL
                    REFERENCES invoice(id) ON DELETE CASCADE,
                position INTEGER NOT NULL,
                description TEXT NOT NULL,
                quantity TEXT NOT NULL,
                rate TEXT NOT NULL,
                amount TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS invoice_template (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                file_path TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1
            );
            CREATE TABLE IF NOT EXISTS customer_invoice_template (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                customer_id TEXT NOT NULL,
                template_id INTEGER NOT NULL
                    REFERENCES invoice_template(id),
                effective_from TEXT,
                effective_to TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_rate_sheet_customer ON rate_sheet(customer_id);
            CREATE INDEX IF NOT EXISTS idx_warehouse_key ON warehouse(warehouse_id);
        """)
        conn.commit()
    finally:
        conn.close()

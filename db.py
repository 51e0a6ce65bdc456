"""Database operations for the invoicing tool - self-contained."""

import sqlite3
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any
from pathlib import Path

from errors import PersistenceNotFound, ValidationError

logger = logging.getLogger(__name__)


def get_app_dir() -> Path:
    """Get the application directory."""
    return Path(__file__).parent


def _subdir(name: str) -> Path:
    path = get_app_dir() / name
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Get the data directory (creates if needed)."""
    return _subdir("data")


def get_config_dir() -> Path:
    """Get the config directory (creates if needed)."""
    return _subdir("config")


def get_invoices_dir() -> Path:
    """Get the invoices directory (creates if needed)."""
    return _subdir("invoices")


def get_exports_dir() -> Path:
    """Get the report exports directory (creates if needed)."""
    return _subdir("exports")


DB_PATH = None


def get_db_path() -> Path:
    """Get the database path."""
    global DB_PATH
    if DB_PATH is None:
        DB_PATH = get_data_dir() / "invoices.db"
    return DB_PATH


def get_connection() -> sqlite3.Connection:
    """Get database connection with row factory."""
    conn = sqlite3.connect(get_db_path(), timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db():
    """Initialize all database tables."""
    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS clients (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            business TEXT,
            address TEXT,
            phone TEXT,
            email TEXT UNIQUE NOT NULL
        )
    """)

    # Client fields are copied onto the invoice, not referenced
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS invoices (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_number INTEGER UNIQUE NOT NULL,
            date TEXT NOT NULL,
            client_name TEXT NOT NULL,
            client_business TEXT,
            client_address TEXT,
            client_phone TEXT,
            client_email TEXT,
            hourly_rate REAL NOT NULL,
            job_type TEXT NOT NULL,
            is_canceled INTEGER DEFAULT 0,
            notes TEXT DEFAULT '',
            subtitle TEXT DEFAULT '',
            total REAL NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS invoice_work_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            description TEXT NOT NULL,
            hours REAL NOT NULL,
            FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS invoice_expenses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            description TEXT NOT NULL,
            amount REAL NOT NULL,
            FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS service_breakdowns (
            invoice_id INTEGER PRIMARY KEY,
            setup_start TEXT NOT NULL,
            depo_start TEXT NOT NULL,
            depo_end TEXT NOT NULL,
            breakdown_end TEXT NOT NULL,
            lunch_break REAL DEFAULT 0,
            total_hours REAL NOT NULL,
            FOREIGN KEY (invoice_id) REFERENCES invoices(id) ON DELETE CASCADE
        )
    """)

    # Named monotonic sequences (invoice numbers)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS counters (
            name TEXT PRIMARY KEY,
            value INTEGER NOT NULL DEFAULT 0
        )
    """)

    conn.commit()
    conn.close()


# === Counters ===

def next_invoice_number(name: str = 'invoice') -> int:
    """Atomically increment a counter and return the new value."""
    conn = sqlite3.connect(get_db_path(), timeout=30, isolation_level=None)
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            conn.execute("INSERT OR IGNORE INTO counters (name, value) VALUES (?, 0)", (name,))
            conn.execute("UPDATE counters SET value = value + 1 WHERE name = ?", (name,))
            value = conn.execute("SELECT value FROM counters WHERE name = ?", (name,)).fetchone()[0]
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
    finally:
        conn.close()
    return value


# === Clients ===

CLIENT_FIELDS = ('name', 'business', 'address', 'phone', 'email')


def _clean_client(data: Dict) -> Dict:
    client = {field: (data.get(field) or '').strip() for field in CLIENT_FIELDS}
    if not client['name']:
        raise ValidationError("Client name cannot be empty")
    if not client['email']:
        raise ValidationError("Client email cannot be empty")
    return client


def get_clients(sort_by_name: bool = True) -> List[Dict]:
    """Get all clients."""
    conn = get_connection()
    cursor = conn.cursor()
    query = "SELECT * FROM clients"
    query += " ORDER BY name COLLATE NOCASE" if sort_by_name else " ORDER BY id"
    cursor.execute(query)
    rows = cursor.fetchall()
    conn.close()
    return [dict(row) for row in rows]


def count_clients() -> int:
    """Number of saved clients."""
    conn = get_connection()
    count = conn.execute("SELECT COUNT(*) FROM clients").fetchone()[0]
    conn.close()
    return count


def get_client(client_id: int) -> Optional[Dict]:
    """Get client by ID."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM clients WHERE id = ?", (client_id,))
    row = cursor.fetchone()
    conn.close()
    return dict(row) if row else None


def get_client_by_email(email: str) -> Optional[Dict]:
    """Get client by email address."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("SELECT * FROM clients WHERE email = ?", (email.strip(),))
    row = cursor.fetchone()
    conn.close()
    return dict(row) if row else None


def save_client(data: Dict) -> int:
    """Save new client, return ID."""
    client = _clean_client(data)
    conn = get_connection()
    cursor = conn.cursor()
    try:
        cursor.execute("""
            INSERT INTO clients (name, business, address, phone, email)
            VALUES (?, ?, ?, ?, ?)
        """, tuple(client[field] for field in CLIENT_FIELDS))
    except sqlite3.IntegrityError:
        conn.close()
        raise ValidationError(f"A client with email {client['email']} already exists")
    client_id = cursor.lastrowid
    conn.commit()
    conn.close()
    logger.info("Created client %s (%s)", client_id, client['email'])
    return client_id


def update_client(client_id: int, data: Dict):
    """Update existing client. Past invoices keep their own copy."""
    client = _clean_client(data)
    conn = get_connection()
    cursor = conn.cursor()
    try:
        cursor.execute("""
            UPDATE clients SET name = ?, business = ?, address = ?, phone = ?, email = ?
            WHERE id = ?
        """, tuple(client[field] for field in CLIENT_FIELDS) + (client_id,))
    except sqlite3.IntegrityError:
        conn.close()
        raise ValidationError(f"A client with email {client['email']} already exists")
    updated = cursor.rowcount
    conn.commit()
    conn.close()
    if not updated:
        raise PersistenceNotFound(f"Client {client_id} not found")


def delete_client(client_id: int):
    """Permanently delete a client."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("DELETE FROM clients WHERE id = ?", (client_id,))
    deleted = cursor.rowcount
    conn.commit()
    conn.close()
    if not deleted:
        raise PersistenceNotFound(f"Client {client_id} not found")
    logger.info("Deleted client %s", client_id)


# === Invoices ===

INVOICE_SORT_COLUMNS = ('invoice_number', 'date', 'total', 'client_name')


def _row_to_invoice(conn: sqlite3.Connection, row: sqlite3.Row) -> Dict:
    """Assemble an invoice dict from its row and child tables."""
    data = dict(row)
    invoice_id = data['id']

    work_logs = conn.execute("""
        SELECT description, hours FROM invoice_work_logs
        WHERE invoice_id = ? ORDER BY position
    """, (invoice_id,)).fetchall()
    expenses = conn.execute("""
        SELECT description, amount FROM invoice_expenses
        WHERE invoice_id = ? ORDER BY position
    """, (invoice_id,)).fetchall()
    breakdown = conn.execute("""
        SELECT setup_start, depo_start, depo_end, breakdown_end, lunch_break, total_hours
        FROM service_breakdowns WHERE invoice_id = ?
    """, (invoice_id,)).fetchone()

    return {
        'id': invoice_id,
        'invoice_number': data['invoice_number'],
        'date': datetime.fromisoformat(data['date']),
        'client': {
            'name': data['client_name'],
            'business': data['client_business'] or '',
            'address': data['client_address'] or '',
            'phone': data['client_phone'] or '',
            'email': data['client_email'] or '',
        },
        'hourly_rate': data['hourly_rate'],
        'job_type': data['job_type'],
        'is_canceled': bool(data['is_canceled']),
        'work_logs': [dict(r) for r in work_logs],
        'service_breakdown': dict(breakdown) if breakdown else None,
        'expenses': [dict(r) for r in expenses],
        'notes': data['notes'] or '',
        'subtitle': data['subtitle'] or '',
        'total': data['total'],
    }


def get_invoices(sort_by: str = 'invoice_number', descending: bool = True) -> List[Dict]:
    """Get all invoices."""
    if sort_by not in INVOICE_SORT_COLUMNS:
        raise ValidationError(f"Cannot sort invoices by {sort_by!r}")
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute(f"SELECT * FROM invoices ORDER BY {sort_by} {'DESC' if descending else 'ASC'}")
    invoices = [_row_to_invoice(conn, row) for row in cursor.fetchall()]
    conn.close()
    return invoices


def get_invoices_between(start: datetime, end: datetime) -> List[Dict]:
    """Get invoices dated within [start, end], inclusive."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("""
        SELECT * FROM invoices WHERE date >= ? AND date <= ?
        ORDER BY date
    """, (_format_date(start), _format_date(end)))
    invoices = [_row_to_invoice(conn, row) for row in cursor.fetchall()]
    conn.close()
    return invoices


def get_invoice(invoice_id: int) -> Optional[Dict]:
    """Get invoice by ID."""
    conn = get_connection()
    row = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
    invoice = _row_to_invoice(conn, row) if row else None
    conn.close()
    return invoice


def get_invoice_by_number(invoice_number: int) -> Optional[Dict]:
    """Get invoice by its invoice number."""
    conn = get_connection()
    row = conn.execute("SELECT * FROM invoices WHERE invoice_number = ?", (invoice_number,)).fetchone()
    invoice = _row_to_invoice(conn, row) if row else None
    conn.close()
    return invoice


def _format_date(value) -> str:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.replace(microsecond=0).isoformat()


def save_invoice(invoice: Dict) -> int:
    """Insert or update an invoice with its work logs, expenses and breakdown.

    Everything is written in one transaction. Returns the invoice ID.
    """
    if not invoice.get('work_logs'):
        raise ValidationError("Invoice has no work logs")
    if invoice.get('total') is None:
        raise ValidationError("Invoice total has not been computed")
    if invoice.get('invoice_number') is None:
        raise ValidationError("Invoice has no invoice number")

    client = invoice['client']
    values = (
        invoice['invoice_number'],
        _format_date(invoice.get('date') or datetime.now()),
        client.get('name', ''),
        client.get('business', ''),
        client.get('address', ''),
        client.get('phone', ''),
        client.get('email', ''),
        invoice['hourly_rate'],
        invoice['job_type'],
        1 if invoice.get('is_canceled') else 0,
        invoice.get('notes') or '',
        invoice.get('subtitle') or '',
        invoice['total'],
    )

    conn = get_connection()
    cursor = conn.cursor()
    try:
        invoice_id = invoice.get('id')
        if invoice_id is None:
            cursor.execute("""
                INSERT INTO invoices
                (invoice_number, date, client_name, client_business, client_address,
                 client_phone, client_email, hourly_rate, job_type, is_canceled,
                 notes, subtitle, total)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, values)
            invoice_id = cursor.lastrowid
        else:
            cursor.execute("""
                UPDATE invoices SET
                    invoice_number = ?, date = ?, client_name = ?, client_business = ?,
                    client_address = ?, client_phone = ?, client_email = ?, hourly_rate = ?,
                    job_type = ?, is_canceled = ?, notes = ?, subtitle = ?, total = ?
                WHERE id = ?
            """, values + (invoice_id,))
            if cursor.rowcount == 0:
                raise PersistenceNotFound(f"Invoice {invoice_id} not found")
            for table in ('invoice_work_logs', 'invoice_expenses', 'service_breakdowns'):
                cursor.execute(f"DELETE FROM {table} WHERE invoice_id = ?", (invoice_id,))

        cursor.executemany("""
            INSERT INTO invoice_work_logs (invoice_id, position, description, hours)
            VALUES (?, ?, ?, ?)
        """, [(invoice_id, i, log['description'], log['hours'])
              for i, log in enumerate(invoice['work_logs'])])

        cursor.executemany("""
            INSERT INTO invoice_expenses (invoice_id, position, description, amount)
            VALUES (?, ?, ?, ?)
        """, [(invoice_id, i, e['description'], e['amount'])
              for i, e in enumerate(invoice.get('expenses') or [])])

        breakdown = invoice.get('service_breakdown')
        if breakdown:
            cursor.execute("""
                INSERT INTO service_breakdowns
                (invoice_id, setup_start, depo_start, depo_end, breakdown_end, lunch_break, total_hours)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (invoice_id, breakdown['setup_start'], breakdown['depo_start'],
                  breakdown['depo_end'], breakdown['breakdown_end'],
                  breakdown.get('lunch_break') or 0, breakdown['total_hours']))

        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValidationError(f"Could not save invoice #{invoice['invoice_number']}: {e}")
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    return invoice_id


def delete_invoice(invoice_id: int):
    """Delete an invoice and its line items."""
    conn = get_connection()
    cursor = conn.cursor()
    cursor.execute("DELETE FROM invoices WHERE id = ?", (invoice_id,))
    deleted = cursor.rowcount
    conn.commit()
    conn.close()
    if not deleted:
        raise PersistenceNotFound(f"Invoice {invoice_id} not found")
    logger.info("Deleted invoice %s", invoice_id)


# === Helpers ===

def format_currency(amount: float) -> str:
    """Format amount as currency."""
    return f"${amount:,.2f}"


def format_date_display(value) -> str:
    """Format a date for display (Month DD, YYYY)."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.strftime("%B %d, %Y")


# Initialize on import
init_db()

"""Create and edit invoices from job details."""

import copy
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import db
import settings as settings_policy
from errors import PersistenceNotFound, RenderFailure, ValidationError
from time_calc import IN_PERSON, JOB_TYPES, compute_breakdown, parse_amount, parse_hours

logger = logging.getLogger(__name__)

CANCELATION_FEE_DESCRIPTION = 'Job Cancelation Fee'
DEPOSITION_DESCRIPTION = 'Total Deposition Time'


# === Totals ===

def compute_total(work_logs: Iterable[Dict], hourly_rate: float, expenses: Iterable[Dict]) -> float:
    """Hours times rate plus expenses.

    fsum is exactly rounded, so list order never changes the result.
    """
    work_hours = math.fsum(log['hours'] for log in work_logs)
    expense_total = math.fsum(e['amount'] for e in expenses)
    return work_hours * hourly_rate + expense_total


def recompute_total(invoice: Dict) -> Dict:
    """Overwrite the stored total from the current lists."""
    invoice['total'] = compute_total(
        invoice.get('work_logs') or [],
        invoice['hourly_rate'],
        invoice.get('expenses') or []
    )
    return invoice


# === Line items ===

def make_work_log(description: str, hours) -> Dict:
    return {'description': (description or '').strip(), 'hours': parse_hours(hours)}


def make_expense(description: str, amount) -> Dict:
    return {'description': (description or '').strip(), 'amount': parse_amount(amount)}


def _clean_work_logs(work_logs: Iterable[Dict]) -> List[Dict]:
    return [make_work_log(log.get('description'), log.get('hours')) for log in work_logs]


def _clean_expenses(expenses: Iterable[Dict]) -> List[Dict]:
    return [make_expense(e.get('description'), e.get('amount')) for e in expenses]


def add_expense(expenses: List[Dict], description: str, amount) -> List[Dict]:
    """Return a new list with an expense appended."""
    return list(expenses) + [make_expense(description, amount)]


def replace_expense(expenses: List[Dict], index: int, description: str, amount) -> List[Dict]:
    """Return a new list with the expense at index replaced."""
    if not 0 <= index < len(expenses):
        raise PersistenceNotFound(f"No expense #{index + 1}")
    updated = list(expenses)
    updated[index] = make_expense(description, amount)
    return updated


def remove_expense(expenses: List[Dict], index: int) -> List[Dict]:
    """Return a new list without the expense at index."""
    if not 0 <= index < len(expenses):
        raise PersistenceNotFound(f"No expense #{index + 1}")
    return list(expenses[:index]) + list(expenses[index + 1:])


def snapshot_client(client: Optional[Dict]) -> Dict:
    """Copy the billed-to fields of a client onto the invoice."""
    if not client:
        raise ValidationError("A client is required")
    snapshot = {key: client.get(key) or '' for key in db.CLIENT_FIELDS}
    if not snapshot['name']:
        raise ValidationError("Client name cannot be empty")
    return snapshot


def deposition_description(description: str) -> str:
    description = (description or '').strip()
    return f"{DEPOSITION_DESCRIPTION} - {description}" if description else DEPOSITION_DESCRIPTION


def _canceled_work(settings: Dict) -> List[Dict]:
    hours = settings_policy.get_cancel_hours(settings)
    return [make_work_log(CANCELATION_FEE_DESCRIPTION, hours)]


def _is_generated(log: Dict) -> bool:
    description = log.get('description') or ''
    return description.startswith(DEPOSITION_DESCRIPTION) or description == CANCELATION_FEE_DESCRIPTION


def _deposition_index(work_logs: List[Dict]) -> Optional[int]:
    for i, log in enumerate(work_logs):
        if (log.get('description') or '').startswith(DEPOSITION_DESCRIPTION):
            return i
    return None


def _replace_generated(work_logs: List[Dict], generated: List[Dict]) -> List[Dict]:
    """Swap the deposition or cancel-fee line for new ones, keeping lines the user added."""
    return generated + [log for log in work_logs if not _is_generated(log)]


def _deposition_work(description, setup_start, depo_end, lunch_break, job_type):
    breakdown = compute_breakdown(setup_start, depo_end, lunch_break, job_type)
    work_logs = [make_work_log(deposition_description(description), breakdown['total_hours'])]
    return work_logs, breakdown


# === Builder ===

def build_invoice(
    settings: Dict,
    client: Dict,
    job_type: str = IN_PERSON,
    is_canceled: bool = False,
    description: str = '',
    setup_start: str = '',
    depo_end: str = '',
    lunch_break=0,
    expenses: Iterable[Dict] = (),
    notes: str = '',
    subtitle: str = '',
    date: Optional[datetime] = None
) -> Dict:
    """Assemble an unsaved invoice from job details.

    A cancelled job bills the configured cancel-fee hours. Otherwise the
    deposition times are turned into a service breakdown and a single work
    log entry. The invoice has no number yet; its total is computed.

    Raises ConfigurationMissing if settings are incomplete and
    ValidationError for bad times or amounts.
    """
    hourly_rate = settings_policy.get_hourly_rate(settings, job_type)
    client_snapshot = snapshot_client(client)

    if is_canceled:
        work_logs = _canceled_work(settings)
        breakdown = None
    else:
        work_logs, breakdown = _deposition_work(description, setup_start, depo_end, lunch_break, job_type)

    invoice = {
        'id': None,
        'invoice_number': None,
        'date': (date or datetime.now()).replace(microsecond=0),
        'client': client_snapshot,
        'hourly_rate': hourly_rate,
        'job_type': job_type,
        'is_canceled': bool(is_canceled),
        'work_logs': work_logs,
        'service_breakdown': breakdown,
        'expenses': _clean_expenses(expenses),
        'notes': notes or '',
        'subtitle': subtitle or '',
        'total': None,
    }
    return recompute_total(invoice)


# === Edit commands ===

@dataclass
class SetJobType:
    """Switch In-Person/Remote: picks up that rate and re-derives the schedule.

    Only the deposition line follows the new schedule; other work log lines stay.
    """
    job_type: str

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        if self.job_type not in JOB_TYPES:
            raise ValidationError(f"Unknown job type: {self.job_type!r}")
        invoice['job_type'] = self.job_type
        invoice['hourly_rate'] = settings_policy.get_hourly_rate(settings, self.job_type)
        breakdown = invoice.get('service_breakdown')
        if breakdown and not invoice.get('is_canceled'):
            new_breakdown = compute_breakdown(
                breakdown['setup_start'], breakdown['depo_end'],
                breakdown.get('lunch_break') or 0, self.job_type
            )
            invoice['service_breakdown'] = new_breakdown
            index = _deposition_index(invoice['work_logs'])
            if index is not None:
                work_logs = list(invoice['work_logs'])
                work_logs[index] = make_work_log(work_logs[index]['description'], new_breakdown['total_hours'])
                invoice['work_logs'] = work_logs
        return invoice


@dataclass
class SetHourlyRate:
    hourly_rate: float

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        rate = parse_amount(self.hourly_rate)
        if rate <= 0:
            raise ValidationError("Hourly rate must be greater than zero")
        invoice['hourly_rate'] = rate
        return invoice


@dataclass
class SetWorkLogs:
    """Replace the work log lines.

    The service breakdown is dropped once the deposition line no longer
    matches its total hours.
    """
    work_logs: List[Dict] = field(default_factory=list)

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        work_logs = _clean_work_logs(self.work_logs)
        if not work_logs:
            raise ValidationError("An invoice needs at least one work log entry")
        invoice['work_logs'] = work_logs
        breakdown = invoice.get('service_breakdown')
        if breakdown:
            index = _deposition_index(work_logs)
            if index is None or work_logs[index]['hours'] != breakdown['total_hours']:
                invoice['service_breakdown'] = None
        return invoice


@dataclass
class SetExpenses:
    expenses: List[Dict] = field(default_factory=list)

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        invoice['expenses'] = _clean_expenses(self.expenses)
        return invoice


@dataclass
class SetNotes:
    notes: str

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        invoice['notes'] = self.notes or ''
        return invoice


@dataclass
class SetSubtitle:
    subtitle: str

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        invoice['subtitle'] = self.subtitle or ''
        return invoice


@dataclass
class SetClient:
    client: Dict

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        invoice['client'] = snapshot_client(self.client)
        return invoice


@dataclass
class SetSchedule:
    """Re-enter deposition times; replaces the deposition line and breakdown."""
    description: str
    setup_start: str
    depo_end: str
    lunch_break: float = 0

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        work_logs, breakdown = _deposition_work(
            self.description, self.setup_start, self.depo_end,
            self.lunch_break, invoice['job_type']
        )
        invoice['is_canceled'] = False
        invoice['work_logs'] = _replace_generated(invoice.get('work_logs') or [], work_logs)
        invoice['service_breakdown'] = breakdown
        return invoice


@dataclass
class MarkCanceled:
    """Bill the cancel fee instead of tracked time."""

    def apply(self, invoice: Dict, settings: Dict) -> Dict:
        invoice['is_canceled'] = True
        invoice['work_logs'] = _replace_generated(invoice.get('work_logs') or [], _canceled_work(settings))
        invoice['service_breakdown'] = None
        return invoice


def apply_edits(invoice: Dict, commands: Iterable, settings: Dict) -> Dict:
    """Apply edit commands to a copy of the invoice, then recompute the total."""
    edited = copy.deepcopy(invoice)
    for command in commands:
        edited = command.apply(edited, settings)
    return recompute_total(edited)


# === Orchestration ===

def render_and_send(invoice: Dict, settings: Dict, send_email: bool = False) -> Dict:
    """Render the PDF, then email it if asked. Neither failure undoes the save.

    Raises RenderFailure if the PDF cannot be written.
    """
    from reportlab.platypus.doctemplate import LayoutError
    from generate_pdf import generate_invoice_pdf
    from mailer import send_invoice_email

    try:
        pdf_path = generate_invoice_pdf(invoice, settings)
    except (OSError, LayoutError) as e:
        logger.exception("PDF for invoice #%s failed", invoice['invoice_number'])
        raise RenderFailure(
            f"Invoice #{invoice['invoice_number']} was saved, but its PDF could not be written: {e}"
        )
    emailed = False
    if send_email:
        emailed = send_invoice_email(invoice, pdf_path, settings)
    return {'pdf_path': str(pdf_path), 'emailed': emailed}


def create_invoice(settings: Dict, send_email: bool = False, **job) -> Dict:
    """Build, number, save and render a new invoice.

    Returns dict with:
        success: bool
        invoice: the saved invoice
        pdf_path: str
        emailed: bool
    """
    invoice = build_invoice(settings, **job)

    invoice['invoice_number'] = db.next_invoice_number()
    recompute_total(invoice)
    invoice['id'] = db.save_invoice(invoice)
    logger.info("Created invoice #%s for %s, total %.2f",
                invoice['invoice_number'], invoice['client']['email'], invoice['total'])

    result = render_and_send(invoice, settings, send_email)
    return {'success': True, 'invoice': invoice, **result}


def edit_invoice(invoice_id: int, commands: Iterable, settings: Dict, send_email: bool = False) -> Dict:
    """Apply edits to a saved invoice, save it and re-render its PDF."""
    invoice = db.get_invoice(invoice_id)
    if not invoice:
        raise PersistenceNotFound(f"Invoice {invoice_id} not found")

    edited = apply_edits(invoice, commands, settings)
    db.save_invoice(edited)
    logger.info("Updated invoice #%s, total %.2f", edited['invoice_number'], edited['total'])

    result = render_and_send(edited, settings, send_email)
    return {'success': True, 'invoice': edited, **result}


def delete_invoice(invoice_id: int) -> Dict:
    """Delete a saved invoice. Its number is never handed out again."""
    invoice = db.get_invoice(invoice_id)
    if not invoice:
        raise PersistenceNotFound(f"Invoice {invoice_id} not found")
    db.delete_invoice(invoice_id)
    return invoice

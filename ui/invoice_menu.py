"""Invoice menus: create, view, edit, delete."""

import logging
from typing import Dict, List, Optional

import db
import invoice_builder
import mailer
import settings as settings_policy
from errors import DeliveryFailure, InvoicerError, RenderFailure, ValidationError
from time_calc import JOB_TYPES, IN_PERSON, parse_amount, parse_hours, parse_time
from ui.client_menu import client_label, select_client
from ui.prompts import Prompter, numbered

logger = logging.getLogger(__name__)


def _validate_time(value: str) -> str:
    if parse_time(value) is None:
        raise ValidationError("Enter a time as HH:MM, e.g. 08:00")
    return value


def invoice_label(invoice: Dict) -> str:
    return (f"#{invoice['invoice_number']} - {invoice['client']['name']} - "
            f"{invoice['subtitle'] or 'No subtitle'} - {db.format_currency(invoice['total'])}")


def ask_description(prompter: Prompter, settings: Dict, current: str = '') -> str:
    """Pick a service from the catalog or type one in."""
    services = settings.get('services') or []
    if services and prompter.confirm("Use a predefined service from your catalog?", default=True):
        return prompter.choose("Select a service:", [(s, s) for s in services])
    return prompter.ask("Describe the service", default=current)


def manage_expenses(prompter: Prompter, expenses: List[Dict]) -> List[Dict]:
    """Add, edit or remove expenses. Returns the updated list."""
    expenses = list(expenses)
    while True:
        prompter.say("\nCurrent Expenses:")
        prompter.say(numbered([f"{e['description']}: {db.format_currency(e['amount'])}" for e in expenses]))

        choices = [("Add Expense", 'add')]
        if expenses:
            choices += [("Edit Expense", 'edit'), ("Remove Expense", 'remove')]
        choices.append(("Back", 'back'))
        action = prompter.choose("Expense Actions:", choices)

        if action == 'add':
            description = prompter.ask("Description", required=True)
            amount = prompter.ask("Amount (USD)", validate=parse_amount)
            expenses = invoice_builder.add_expense(expenses, description, amount)
        elif action == 'edit':
            index = prompter.choose("Choose an expense to edit:", [
                (f"{e['description']} - {db.format_currency(e['amount'])}", i) for i, e in enumerate(expenses)])
            current = expenses[index]
            description = prompter.ask("New description", default=current['description'], required=True)
            amount = prompter.ask("New amount", default=f"{current['amount']:.2f}", validate=parse_amount)
            expenses = invoice_builder.replace_expense(expenses, index, description, amount)
        elif action == 'remove':
            index = prompter.choose("Select an expense to remove:", [
                (f"{e['description']} - {db.format_currency(e['amount'])}", i) for i, e in enumerate(expenses)])
            expenses = invoice_builder.remove_expense(expenses, index)
        else:
            return expenses


def manage_work_logs(prompter: Prompter, work_logs: List[Dict]) -> List[Dict]:
    """Add, edit or remove work log lines. Returns the updated list."""
    work_logs = list(work_logs)
    while True:
        prompter.say("\nCurrent Work Log:")
        prompter.say(numbered([f"{w['description']}: {w['hours']:g}h" for w in work_logs]))

        choices = [("Add Entry", 'add')]
        if work_logs:
            choices += [("Edit Entry", 'edit'), ("Remove Entry", 'remove')]
        choices.append(("Back", 'back'))
        action = prompter.choose("Work Log Actions:", choices)

        if action == 'add':
            description = prompter.ask("Description", required=True)
            hours = prompter.ask("Hours", validate=parse_hours)
            work_logs.append(invoice_builder.make_work_log(description, hours))
        elif action == 'edit':
            index = prompter.choose("Choose an entry to edit:", [
                (f"{w['description']} - {w['hours']:g}h", i) for i, w in enumerate(work_logs)])
            current = work_logs[index]
            description = prompter.ask("New description", default=current['description'], required=True)
            hours = prompter.ask("New hours", default=f"{current['hours']:g}", validate=parse_hours)
            work_logs[index] = invoice_builder.make_work_log(description, hours)
        elif action == 'remove':
            index = prompter.choose("Select an entry to remove:", [
                (f"{w['description']} - {w['hours']:g}h", i) for i, w in enumerate(work_logs)])
            del work_logs[index]
        else:
            return work_logs


def offer_email(prompter: Prompter, invoice: Dict, pdf_path: str, settings: Dict, message: str):
    """Ask to email the PDF. A failed send is reported but changes nothing."""
    if not invoice['client'].get('email'):
        return
    if not prompter.confirm(message, default=False):
        return
    try:
        mailer.deliver_invoice(invoice, pdf_path, settings)
    except DeliveryFailure as e:
        logger.error("Invoice #%s email failed: %s", invoice['invoice_number'], e.message)
        prompter.say(f"Email failed: {e.message}")
        return
    logger.info("Invoice #%s emailed to %s", invoice['invoice_number'], invoice['client']['email'])
    prompter.say(f"Email sent to {invoice['client']['email']}.")


# === Create ===

def create_invoice_flow(prompter: Prompter):
    """Wizard for a new invoice."""
    settings = settings_policy.require_configured(settings_policy.load_settings())

    client = select_client(prompter, "Select a client:")
    if not client:
        return

    state = {
        'client': client,
        'job_type': IN_PERSON,
        'is_canceled': False,
        'description': '',
        'setup_start': '',
        'depo_end': '',
        'lunch_break': '0',
        'expenses': [],
        'notes': '',
        'subtitle': '',
    }

    while True:
        choices = [
            (f"Client: {client_label(state['client'])}", 'client'),
            (f"Job Type: {state['job_type']}", 'job_type'),
            (f"Was Job Canceled?: {'Yes' if state['is_canceled'] else 'No'}", 'is_canceled'),
        ]
        if not state['is_canceled']:
            choices += [
                (f"Description: {state['description']}", 'description'),
                (f"Setup Start: {state['setup_start']}", 'setup_start'),
                (f"Deposition End: {state['depo_end']}", 'depo_end'),
                (f"Lunch Break: {state['lunch_break']} hrs", 'lunch_break'),
            ]
        choices += [
            (f"Expenses: {len(state['expenses'])} item(s)", 'expenses'),
            (f"Notes: {state['notes']}", 'notes'),
            (f"Subtitle: {state['subtitle']}", 'subtitle'),
            ("Create Invoice", 'done'),
            ("Cancel Invoice Creation", 'cancel'),
        ]
        field = prompter.choose("What would you like to edit?", choices)

        if field == 'client':
            state['client'] = select_client(prompter) or state['client']
        elif field == 'job_type':
            state['job_type'] = prompter.choose("Job Type:", [(t, t) for t in JOB_TYPES])
        elif field == 'is_canceled':
            state['is_canceled'] = prompter.confirm("Was the job canceled?", default=False)
        elif field == 'description':
            state['description'] = ask_description(prompter, settings, state['description'])
        elif field == 'setup_start':
            state['setup_start'] = prompter.ask("Setup Start Time (e.g. 08:00)",
                                                default=state['setup_start'], validate=_validate_time)
        elif field == 'depo_end':
            state['depo_end'] = prompter.ask("Deposition End Time (e.g. 12:00)",
                                             default=state['depo_end'], validate=_validate_time)
        elif field == 'lunch_break':
            state['lunch_break'] = prompter.ask("Lunch Break (hours, e.g. 0.5)",
                                                default=state['lunch_break'], validate=parse_hours)
        elif field == 'expenses':
            state['expenses'] = manage_expenses(prompter, state['expenses'])
        elif field == 'notes':
            state['notes'] = prompter.ask("Notes", default=state['notes'])
        elif field == 'subtitle':
            state['subtitle'] = prompter.ask("Subtitle", default=state['subtitle'])
        elif field == 'cancel':
            prompter.say("Invoice creation canceled.")
            return
        elif field == 'done':
            try:
                result = invoice_builder.create_invoice(settings, **state)
            except RenderFailure as e:
                prompter.say(e.message)
                return
            except InvoicerError as e:
                prompter.say(f"Could not create invoice: {e.message}")
                continue
            invoice = result['invoice']
            prompter.say(f"Invoice #{invoice['invoice_number']} created. "
                         f"Total: {db.format_currency(invoice['total'])}")
            prompter.say(f"PDF generated: {result['pdf_path']}")
            offer_email(prompter, invoice, result['pdf_path'], settings, "Send the invoice by email now?")
            return


# === View ===

def show_invoice(prompter: Prompter, invoice: Dict):
    client = invoice['client']
    prompter.say(f"\nInvoice #{invoice['invoice_number']} - {db.format_date_display(invoice['date'])}")
    if invoice['subtitle']:
        prompter.say(invoice['subtitle'])
    prompter.say(f"Client: {client['name']} ({client['business']}) {client['email']}")
    prompter.say(f"Job Type: {invoice['job_type']}{' (canceled)' if invoice['is_canceled'] else ''}"
                 f" @ {db.format_currency(invoice['hourly_rate'])}/hr")
    prompter.say("Work Log:")
    prompter.say(numbered([f"{w['description']} - {w['hours']:g}h" for w in invoice['work_logs']]))
    breakdown = invoice['service_breakdown']
    if breakdown:
        prompter.say(f"Service Breakdown: setup {breakdown['setup_start']}, deposition "
                     f"{breakdown['depo_start']}-{breakdown['depo_end']}, breakdown end "
                     f"{breakdown['breakdown_end']}, lunch {breakdown['lunch_break']:g}h, "
                     f"total {breakdown['total_hours']:g}h")
    prompter.say("Expenses:")
    prompter.say(numbered([f"{e['description']} - {db.format_currency(e['amount'])}" for e in invoice['expenses']]))
    if invoice['notes']:
        prompter.say(f"Notes: {invoice['notes']}")
    prompter.say(f"Total: {db.format_currency(invoice['total'])}")


def select_invoice(prompter: Prompter, message: str) -> Optional[Dict]:
    invoices = db.get_invoices(sort_by='invoice_number', descending=True)
    if not invoices:
        prompter.say("No invoices found.")
        return None
    choices = [(invoice_label(inv), inv['id']) for inv in invoices]
    choices.append(("Back", None))
    invoice_id = prompter.choose(message, choices)
    return db.get_invoice(invoice_id) if invoice_id is not None else None


def view_invoices(prompter: Prompter):
    while True:
        invoice = select_invoice(prompter, "Select an invoice to view:")
        if not invoice:
            return
        show_invoice(prompter, invoice)


# === Edit ===

def edit_invoice_flow(prompter: Prompter):
    """Edit a saved invoice field by field, then save, re-render and optionally resend."""
    invoice = select_invoice(prompter, "Select an invoice to edit:")
    if not invoice:
        return
    settings = settings_policy.load_settings() or settings_policy.default_settings()

    commands = []
    preview = invoice

    while True:
        breakdown = preview['service_breakdown']
        choices = [
            (f"Client: {client_label(preview['client'])}", 'client'),
            (f"Job Type: {preview['job_type']}", 'job_type'),
            (f"Hourly Rate: {db.format_currency(preview['hourly_rate'])}", 'hourly_rate'),
            (f"Canceled: {'Yes' if preview['is_canceled'] else 'No'}", 'is_canceled'),
        ]
        if breakdown:
            choices.append((f"Schedule: {breakdown['setup_start']} - {breakdown['breakdown_end']}", 'schedule'))
        choices += [
            (f"Work Log: {len(preview['work_logs'])} item(s)", 'work_logs'),
            (f"Expenses: {len(preview['expenses'])} item(s)", 'expenses'),
            (f"Notes: {preview['notes'] or '[empty]'}", 'notes'),
            (f"Subtitle: {preview['subtitle'] or '[empty]'}", 'subtitle'),
            (f"Save & Exit (total {db.format_currency(preview['total'])})", 'save'),
            ("Cancel Edit", 'cancel'),
        ]
        field = prompter.choose("What would you like to edit?", choices)

        command = None
        if field == 'client':
            client = select_client(prompter, allow_new=False)
            if client:
                command = invoice_builder.SetClient(client)
        elif field == 'job_type':
            command = invoice_builder.SetJobType(prompter.choose("Job Type:", [(t, t) for t in JOB_TYPES]))
        elif field == 'hourly_rate':
            command = invoice_builder.SetHourlyRate(
                prompter.ask("Hourly rate", default=f"{preview['hourly_rate']:.2f}", validate=parse_amount))
        elif field == 'is_canceled':
            if prompter.confirm("Was the job canceled?", default=preview['is_canceled']):
                command = invoice_builder.MarkCanceled()
            elif preview['is_canceled']:
                field = 'schedule'
        elif field == 'work_logs':
            command = invoice_builder.SetWorkLogs(manage_work_logs(prompter, preview['work_logs']))
        elif field == 'expenses':
            command = invoice_builder.SetExpenses(manage_expenses(prompter, preview['expenses']))
        elif field == 'notes':
            command = invoice_builder.SetNotes(prompter.ask("Enter new notes", default=preview['notes']))
        elif field == 'subtitle':
            command = invoice_builder.SetSubtitle(prompter.ask("Enter new subtitle", default=preview['subtitle']))
        elif field == 'cancel':
            prompter.say("Canceled edit.")
            return
        elif field == 'save':
            result = invoice_builder.edit_invoice(invoice['id'], commands, settings)
            saved = result['invoice']
            prompter.say(f"Invoice #{saved['invoice_number']} saved.")
            prompter.say(f"PDF regenerated: {result['pdf_path']}")
            offer_email(prompter, saved, result['pdf_path'], settings,
                        "Do you want to resend the invoice by email?")
            return

        if field == 'schedule':
            current = breakdown or {}
            command = invoice_builder.SetSchedule(
                description=ask_description(prompter, settings),
                setup_start=prompter.ask("Setup Start Time (e.g. 08:00)",
                                         default=current.get('setup_start', ''), validate=_validate_time),
                depo_end=prompter.ask("Deposition End Time (e.g. 12:00)",
                                      default=current.get('depo_end', ''), validate=_validate_time),
                lunch_break=prompter.ask("Lunch Break (hours, e.g. 0.5)",
                                         default=f"{current.get('lunch_break', 0):g}", validate=parse_hours),
            )

        if command is None:
            continue
        try:
            preview = invoice_builder.apply_edits(preview, [command], settings)
        except InvoicerError as e:
            prompter.say(f"Invalid input: {e.message}")
            continue
        commands.append(command)


# === Delete ===

def delete_invoice_flow(prompter: Prompter):
    invoice = select_invoice(prompter, "Select an invoice to delete:")
    if not invoice:
        return
    if prompter.confirm(f"Delete invoice #{invoice['invoice_number']}? This cannot be undone.", default=False):
        invoice_builder.delete_invoice(invoice['id'])
        prompter.say(f"Invoice #{invoice['invoice_number']} deleted.")
    else:
        prompter.say("Deletion cancelled.")

"""Top-level menu loop."""

import logging

from errors import InvoicerError
from ui.client_menu import client_management_menu
from ui.invoice_menu import create_invoice_flow, delete_invoice_flow, edit_invoice_flow, view_invoices
from ui.prompts import Prompter
from ui.report_menu import report_menu
from ui.settings_menu import configure_settings

logger = logging.getLogger(__name__)

ACTIONS = [
    ("Create New Invoice", create_invoice_flow),
    ("View All Invoices", view_invoices),
    ("Edit an Invoice", edit_invoice_flow),
    ("Delete an Invoice", delete_invoice_flow),
    ("View Revenue Dashboard", report_menu),
    ("Manage Clients", client_management_menu),
    ("Settings", configure_settings),
    ("Exit", None),
]


def main_menu(prompter: Prompter) -> int:
    """Run menu actions until the user exits. Returns the exit status."""
    while True:
        action = prompter.choose("Main Menu - Choose an action:", ACTIONS)
        if action is None:
            prompter.say("Exiting...")
            return 0
        try:
            action(prompter)
        except InvoicerError as e:
            logger.warning("%s failed: %s", action.__name__, e.message)
            prompter.say(f"\n{e.message}")
        except OSError as e:
            logger.exception("%s failed", action.__name__)
            prompter.say(f"\nFile or network error: {e}")

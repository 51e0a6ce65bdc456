"""Main entry point for the invoicing tool."""

import logging
import os
import sys

from dotenv import load_dotenv

import db
import settings as settings_policy
from ui.client_menu import create_client
from ui.main_menu import main_menu
from ui.prompts import Prompter
from ui.settings_menu import configure_settings


def setup_logging():
    """Log to data/invoicer.log; the terminal is kept for prompts."""
    level = os.environ.get('INVOICER_LOG_LEVEL', 'INFO').upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[logging.FileHandler(db.get_data_dir() / 'invoicer.log', encoding='utf-8')]
    )


def check_initial_setup(prompter: Prompter) -> bool:
    """Make sure settings and at least one client exist. False means quit."""
    if not settings_policy.is_configured(settings_policy.load_settings()):
        prompter.say("\nSettings are not configured.")
        if not prompter.confirm("Would you like to configure your settings now?", default=True):
            prompter.say("You must configure your settings before using the app.")
            return False
        configure_settings(prompter)
        if not settings_policy.is_configured(settings_policy.load_settings()):
            prompter.say("Both hourly rates must be set before using the app.")
            return False

    if db.count_clients() == 0:
        prompter.say("\nNo clients found in the system.")
        if not prompter.confirm("Would you like to create your first client now?", default=True):
            prompter.say("Cannot continue without at least one client.")
            return False
        if not create_client(prompter):
            return False

    return True


def main():
    """Main entry point."""
    load_dotenv()
    setup_logging()
    db.init_db()
    logging.getLogger(__name__).info("Starting, database at %s", db.get_db_path())

    prompter = Prompter()
    try:
        if not check_initial_setup(prompter):
            sys.exit(1)
        sys.exit(main_menu(prompter))
    except (KeyboardInterrupt, EOFError):
        prompter.say("\nExiting...")
        sys.exit(0)


if __name__ == '__main__':
    main()

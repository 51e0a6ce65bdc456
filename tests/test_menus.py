"""Tests for the menus, driven by scripted answers."""

import pytest
import tempfile
import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import db
import main
import settings as settings_policy
from ui.invoice_menu import create_invoice_flow, delete_invoice_flow, edit_invoice_flow
from ui.main_menu import main_menu
from ui.prompts import Prompter
from ui.report_menu import report_menu
from ui.settings_menu import configure_settings


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    temp_dir = tempfile.mkdtemp()

    original_get_app_dir = db.get_app_dir
    db.get_app_dir = lambda: Path(temp_dir)
    db.DB_PATH = None

    db.init_db()

    yield temp_dir

    db.get_app_dir = original_get_app_dir
    db.DB_PATH = None

    import shutil
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def configured(temp_db):
    data = settings_policy.default_settings()
    data.update({'hourlyInPerson': 100.0, 'hourlyRemote': 80.0, 'cancelHours': 3.0})
    settings_policy.save_settings(data)
    db.save_client({'name': "Jane Smith", 'email': "jane@example.com"})
    return data


class Script:
    """Feeds answers to a Prompter and keeps what it printed."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.output = []
        self.prompter = Prompter(input_func=self.read, output_func=self.output.append)

    def read(self, prompt):
        assert self.answers, f"Ran out of answers at: {prompt}"
        return self.answers.pop(0)

    @property
    def text(self):
        return "\n".join(self.output)


class TestPrompter:
    """Test the prompt primitives."""

    def test_ask_uses_default(self):
        script = Script("")
        assert script.prompter.ask("Year", default="2024") == "2024"

    def test_ask_reasks_until_valid(self):
        script = Script("abc", "12.5")
        assert script.prompter.ask("Amount", validate=settings_policy.parse_amount) == 12.5
        assert script.output == ["  Amount must be a number, got 'abc'"]

    def test_required_reasks_on_empty(self):
        script = Script("", "Jane")
        assert script.prompter.ask("Name", required=True) == "Jane"
        assert "This field cannot be empty." in script.text

    def test_confirm(self):
        assert Script("").prompter.confirm("Ok?", default=False) is False
        assert Script("maybe", "y").prompter.confirm("Ok?") is True

    def test_choose_rejects_out_of_range(self):
        script = Script("0", "3", "2")
        assert script.prompter.choose("Pick", [("A", 'a'), ("B", 'b')]) == 'b'


class TestMainMenu:
    """Test the top-level loop."""

    def test_exit_returns_zero(self, configured):
        assert main_menu(Script("8").prompter) == 0

    def test_errors_are_shown_and_loop_continues(self, temp_db):
        script = Script("1", "8")
        assert main_menu(script.prompter) == 0
        assert "Settings not found" in script.text

    def test_file_errors_are_shown_and_loop_continues(self, configured):
        script = Script("2", "8")
        with patch('db.get_invoices', side_effect=OSError("disk unavailable")):
            assert main_menu(script.prompter) == 0
        assert "disk unavailable" in script.text

    def test_initial_setup_declined(self, temp_db):
        script = Script("n")
        assert main.check_initial_setup(script.prompter) is False
        assert "You must configure your settings" in script.text

    def test_initial_setup_requires_client(self, temp_db):
        data = settings_policy.default_settings()
        data.update({'hourlyInPerson': 100.0, 'hourlyRemote': 80.0})
        settings_policy.save_settings(data)

        script = Script("y", "Jane Smith", "", "", "", "jane@example.com")
        assert main.check_initial_setup(script.prompter) is True
        assert db.count_clients() == 1


class TestCreateInvoiceFlow:
    """Test the invoice wizard."""

    def test_deposition_invoice(self, configured):
        script = Script(
            "1",                          # client
            "4", "Video Deposition",      # description
            "5", "08:00",                 # setup start
            "6", "12:00",                 # deposition end
            "7", "0.5",                   # lunch
            "11",                         # create
            "n",                          # no email
        )
        create_invoice_flow(script.prompter)

        invoices = db.get_invoices()
        assert len(invoices) == 1
        assert invoices[0]['total'] == 400.0
        assert invoices[0]['work_logs'][0]['description'] == "Total Deposition Time - Video Deposition"
        assert "Invoice #1 created. Total: $400.00" in script.text

    def test_canceled_invoice(self, configured):
        script = Script("1", "3", "y", "7", "")
        create_invoice_flow(script.prompter)

        invoice = db.get_invoices()[0]
        assert invoice['is_canceled'] is True
        assert invoice['total'] == 300.0

    def test_missing_times_keep_wizard_open(self, configured):
        script = Script("1", "11", "12")
        create_invoice_flow(script.prompter)

        assert "Could not create invoice" in script.text
        assert db.get_invoices() == []
        assert db.next_invoice_number() == 1

    def test_bad_time_is_reasked(self, configured):
        script = Script("1", "5", "8am", "08:00", "12")
        create_invoice_flow(script.prompter)
        assert "Enter a time as HH:MM" in script.text

    def test_pdf_failure_reported_after_save(self, configured):
        script = Script("1", "3", "y", "7")
        with patch('generate_pdf.generate_invoice_pdf', side_effect=OSError("disk full")):
            create_invoice_flow(script.prompter)

        assert "was saved, but its PDF could not be written: disk full" in script.text
        assert len(db.get_invoices()) == 1


class TestEditInvoiceFlow:
    """Test editing a saved invoice from the menu."""

    def test_uncancel_asks_for_schedule(self, configured, monkeypatch):
        monkeypatch.delenv('EMAIL_USER', raising=False)
        monkeypatch.delenv('EMAIL_PASS', raising=False)
        create_invoice_flow(Script("1", "3", "y", "7", "").prompter)
        assert db.get_invoices()[0]['total'] == 300.0

        script = Script(
            "1",                          # invoice
            "4", "n",                     # no longer canceled
            "Video Deposition", "08:00", "12:00", "0.5",
            "9", "Case 42",               # subtitle
            "10",                         # save
            "y",                          # resend, fails without credentials
        )
        edit_invoice_flow(script.prompter)

        saved = db.get_invoices()[0]
        assert saved['is_canceled'] is False
        assert saved['total'] == 400.0
        assert saved['subtitle'] == "Case 42"
        assert saved['work_logs'] == [
            {'description': "Total Deposition Time - Video Deposition", 'hours': 4.0}]
        assert saved['service_breakdown']['depo_start'] == "09:00"

        pdf_line = next(line for line in script.output if line.startswith("PDF regenerated: "))
        assert Path(pdf_line[len("PDF regenerated: "):]).exists()
        assert "Email failed: Email credentials not configured" in script.text

    def test_cancel_edit_changes_nothing(self, configured):
        create_invoice_flow(Script("1", "3", "y", "7", "").prompter)
        edit_invoice_flow(Script("1", "3", "150", "10").prompter)
        assert db.get_invoices()[0]['total'] == 300.0


class TestDeleteInvoiceFlow:
    """Test deleting from the menu."""

    def test_delete_requires_confirmation(self, configured):
        create_invoice_flow(Script("1", "3", "y", "7", "").prompter)

        delete_invoice_flow(Script("1", "").prompter)
        assert len(db.get_invoices()) == 1

        delete_invoice_flow(Script("1", "y").prompter)
        assert db.get_invoices() == []


class TestSettingsMenu:
    """Test the settings editor."""

    def test_configure_from_scratch(self, temp_db):
        script = Script(
            "7", "100",                   # in-person rate
            "8", "80",                    # remote rate
            "9", "3",                     # cancel hours
            "10", "1", "Video Deposition", "4",
            "11",
        )
        configure_settings(script.prompter)

        saved = settings_policy.load_settings()
        assert saved['hourlyInPerson'] == 100.0
        assert saved['hourlyRemote'] == 80.0
        assert saved['cancelHours'] == 3.0
        assert saved['services'] == ["Video Deposition"]
        assert settings_policy.is_configured(saved)

    def test_negative_rate_is_reasked(self, temp_db):
        script = Script("7", "-5", "90", "11")
        configure_settings(script.prompter)
        assert settings_policy.load_settings()['hourlyInPerson'] == 90.0


class TestReportMenu:
    """Test the revenue dashboard."""

    def test_report_and_export(self, configured):
        create_invoice_flow(Script("1", "3", "y", "7", "").prompter)
        year = db.get_invoices()[0]['date'].year

        script = Script("", "4")
        report_menu(script.prompter, today=datetime(year, 6, 1))

        assert f"Year: {year}" in script.text
        assert "Total Revenue: $300.00" in script.text
        assert (db.get_exports_dir() / f"revenue-{year}.json").exists()
        assert (db.get_exports_dir() / f"revenue-{year}.csv").exists()

"""Revenue dashboard."""

from datetime import datetime
from typing import Optional

import reports
from errors import ValidationError
from ui.prompts import Prompter


def _validate_year(value: str) -> int:
    if not value.isdigit() or not 1900 <= int(value) <= 9999:
        raise ValidationError("Enter a four-digit year, e.g. 2024")
    return int(value)


def report_menu(prompter: Prompter, today: Optional[datetime] = None):
    prompter.say("\nRevenue Dashboard\n")
    current_year = (today or datetime.now()).year
    year = prompter.ask("Enter year for report", default=str(current_year), validate=_validate_year)

    report = reports.get_yearly_report(year)
    prompter.say(reports.format_report(report))

    choice = prompter.choose("Do you want to export this report?", [
        ("No", None), ("JSON", 'json'), ("CSV", 'csv'), ("Both", 'both'),
    ])
    name = f"revenue-{year}"
    if choice in ('json', 'both'):
        prompter.say(f"Exported to {reports.export_report_json(report, name)}")
    if choice in ('csv', 'both'):
        prompter.say(f"Exported to {reports.export_report_csv(report, name)}")

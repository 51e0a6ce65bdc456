"""Yearly revenue report and its JSON/CSV export."""

import csv
import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable

import db

logger = logging.getLogger(__name__)

CSV_HEADER = ['Year', 'Invoices', 'TotalHours', 'Revenue', 'Expenses', 'NetIncome']


def year_bounds(year: int):
    """First and last second of a calendar year."""
    year = int(year)
    return datetime(year, 1, 1, 0, 0, 0), datetime(year, 12, 31, 23, 59, 59)


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def summarize_year(year: int, invoices: Iterable[Dict]) -> Dict:
    """Aggregate invoices dated within the given year.

    net_income is revenue minus expenses. Revenue already contains the
    expenses billed on each invoice, so this is the labor-only income.
    """
    start, end = year_bounds(year)
    selected = [inv for inv in invoices if start <= _as_datetime(inv['date']) <= end]

    revenue = math.fsum(inv['total'] for inv in selected)
    hours = math.fsum(log['hours'] for inv in selected for log in inv.get('work_logs') or [])
    expenses = math.fsum(e['amount'] for inv in selected for e in inv.get('expenses') or [])

    return {
        'year': int(year),
        'invoices': len(selected),
        'total_hours': hours,
        'total_revenue': revenue,
        'total_expenses': expenses,
        'net_income': revenue - expenses,
    }


def get_yearly_report(year: int) -> Dict:
    """Revenue report for one calendar year from saved invoices."""
    start, end = year_bounds(year)
    return summarize_year(year, db.get_invoices_between(start, end))


def format_report(report: Dict) -> str:
    """Human-readable report for the terminal."""
    return "\n".join([
        f"Year: {report['year']}",
        f"Invoices Issued: {report['invoices']}",
        f"Total Hours: {report['total_hours']:g}",
        f"Total Revenue: {db.format_currency(report['total_revenue'])}",
        f"Total Expenses: {db.format_currency(report['total_expenses'])}",
        f"Net Income: {db.format_currency(report['net_income'])}",
    ])


def export_report_json(report: Dict, name: str) -> Path:
    """Write the report as JSON to the exports directory."""
    path = db.get_exports_dir() / f"{name}.json"
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2)
    logger.info("Exported report to %s", path)
    return path


def export_report_csv(report: Dict, name: str) -> Path:
    """Write the report as a one-row CSV to the exports directory."""
    path = db.get_exports_dir() / f"{name}.csv"
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        writer.writerow([
            report['year'],
            report['invoices'],
            round(report['total_hours'], 2),
            f"{report['total_revenue']:.2f}",
            f"{report['total_expenses']:.2f}",
            f"{report['net_income']:.2f}",
        ])
    logger.info("Exported report to %s", path)
    return path

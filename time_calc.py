"""Wall-clock arithmetic for deposition jobs.

Times are "HH:MM" strings on the way in and out, minutes past midnight
in between.
"""

import math
import re
from typing import Dict, Optional

from errors import ValidationError

IN_PERSON = 'In-Person'
REMOTE = 'Remote'
JOB_TYPES = (IN_PERSON, REMOTE)

# Setup before the deposition starts, by job type
SETUP_MINUTES = {IN_PERSON: 60, REMOTE: 30}
BREAKDOWN_MINUTES = 30
MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r'^(\d{1,2}):(\d{2})$')


def parse_time(value: Optional[str]) -> Optional[int]:
    """Convert "HH:MM" to minutes past midnight, or None if malformed."""
    if not value:
        return None
    match = _TIME_RE.match(str(value).strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_time(minutes: int) -> str:
    """Format minutes as "HH:MM", wrapping past midnight."""
    minutes = int(minutes) % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _non_negative(value, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number, got {value!r}")
    if not math.isfinite(number):
        raise ValidationError(f"{label} must be a finite number, got {value!r}")
    if number < 0:
        raise ValidationError(f"{label} cannot be negative")
    return number


def parse_hours(value) -> float:
    """Parse an hours value (e.g. "0.5")."""
    return _non_negative(value, 'Hours')


def parse_amount(value) -> float:
    """Parse a currency amount (e.g. "12.50")."""
    if isinstance(value, str):
        value = value.strip().lstrip('$').replace(',', '')
    return _non_negative(value, 'Amount')


def compute_breakdown(
    setup_start: str,
    depo_end: str,
    lunch_break=0,
    job_type: str = IN_PERSON
) -> Dict:
    """Derive the service breakdown for a deposition job.

    Deposition starts one hour after setup for in-person jobs and half an
    hour after for remote ones; breakdown always ends half an hour after the
    deposition. Raises ValidationError if a time does not parse or the
    billable duration is not positive.
    """
    if job_type not in SETUP_MINUTES:
        raise ValidationError(f"Unknown job type: {job_type!r}")

    setup = parse_time(setup_start)
    if setup is None:
        raise ValidationError(f"Invalid setup start time: {setup_start!r} (expected HH:MM)")
    depo_end_min = parse_time(depo_end)
    if depo_end_min is None:
        raise ValidationError(f"Invalid deposition end time: {depo_end!r} (expected HH:MM)")
    lunch = _non_negative(lunch_break if lunch_break not in (None, '') else 0, 'Lunch break')

    depo_start = setup + SETUP_MINUTES[job_type]
    breakdown_end = depo_end_min + BREAKDOWN_MINUTES
    total_hours = round((breakdown_end - setup) / 60 - lunch, 2)
    if total_hours <= 0:
        raise ValidationError(
            f"Total time must be greater than zero (got {total_hours} hours). "
            "Check the start and end times."
        )

    return {
        'setup_start': format_time(setup),
        'depo_start': format_time(depo_start),
        'depo_end': format_time(depo_end_min),
        'breakdown_end': format_time(breakdown_end),
        'lunch_break': lunch,
        'total_hours': total_hours,
    }

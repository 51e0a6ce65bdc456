"""Billing settings: freelancer profile, hourly rates, cancel fee and service catalog.

Stored as a single JSON document in the config directory. The settings dict is
loaded once by the caller and passed explicitly to whatever needs it.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import db
from errors import ConfigurationMissing, PersistenceNotFound, ValidationError
from time_calc import IN_PERSON, REMOTE, parse_amount

logger = logging.getLogger(__name__)

SETTINGS_FILE = 'settings.json'

FREELANCER_FIELDS = ('name', 'business', 'email', 'phone', 'address', 'website')
NUMERIC_FIELDS = ('hourlyInPerson', 'hourlyRemote', 'cancelHours')

RATE_KEYS = {
    IN_PERSON: 'hourlyInPerson',
    REMOTE: 'hourlyRemote',
}


def get_settings_path() -> Path:
    """Get the settings file path."""
    return db.get_config_dir() / SETTINGS_FILE


def default_settings() -> Dict:
    """Empty settings skeleton, nothing configured."""
    return {
        'freelancer': {field: '' for field in FREELANCER_FIELDS},
        'hourlyInPerson': None,
        'hourlyRemote': None,
        'cancelHours': None,
        'services': [],
    }


def load_settings() -> Optional[Dict]:
    """Load settings, or None if the file does not exist yet."""
    path = get_settings_path()
    if not path.exists():
        return None
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    settings = default_settings()
    settings.update(data)
    settings['freelancer'] = {**default_settings()['freelancer'], **(data.get('freelancer') or {})}
    settings['services'] = list(data.get('services') or [])
    return settings


def save_settings(settings: Dict):
    """Write settings to disk."""
    path = get_settings_path()
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(settings, f, indent=2)
    logger.info("Settings saved to %s", path)


def is_configured(settings: Optional[Dict]) -> bool:
    """True once both hourly rates are set."""
    if not settings:
        return False
    return all(settings.get(key) for key in RATE_KEYS.values())


def require_configured(settings: Optional[Dict]) -> Dict:
    """Return settings, or raise if invoices cannot be created with them."""
    if settings is None:
        raise ConfigurationMissing("Settings not found. Go to Settings and set up your account.")
    missing = [key for key in RATE_KEYS.values() if not settings.get(key)]
    if missing:
        raise ConfigurationMissing(
            f"Settings incomplete: {', '.join(missing)} not set. Go to Settings to configure them."
        )
    return settings


def get_hourly_rate(settings: Optional[Dict], job_type: str) -> float:
    """Hourly rate that applies to a job type."""
    if job_type not in RATE_KEYS:
        raise ValidationError(f"Unknown job type: {job_type!r}")
    settings = require_configured(settings)
    return float(settings[RATE_KEYS[job_type]])


def get_cancel_hours(settings: Optional[Dict]) -> float:
    """Flat hours billed for a cancelled job."""
    if not settings or settings.get('cancelHours') is None:
        raise ConfigurationMissing("Cancel fee hours not set. Go to Settings to configure them.")
    return float(settings['cancelHours'])


def update_field(settings: Dict, field: str, value) -> Dict:
    """Set one settings field after validating it."""
    if field in FREELANCER_FIELDS:
        text = str(value or '').strip()
        if not text:
            raise ValidationError(f"{field} cannot be empty")
        settings.setdefault('freelancer', {})[field] = text
    elif field in NUMERIC_FIELDS:
        settings[field] = parse_amount(value)
    else:
        raise ValidationError(f"Unknown setting: {field!r}")
    return settings


# === Service catalog ===

def add_service(settings: Dict, name: str) -> List[str]:
    """Append a service to the catalog."""
    name = (name or '').strip()
    if not name:
        raise ValidationError("Service name cannot be empty")
    settings.setdefault('services', []).append(name)
    return settings['services']


def rename_service(settings: Dict, old_name: str, new_name: str) -> List[str]:
    """Rename the first service that matches exactly."""
    new_name = (new_name or '').strip()
    if not new_name:
        raise ValidationError("Service name cannot be empty")
    services = settings.setdefault('services', [])
    try:
        index = services.index(old_name)
    except ValueError:
        raise PersistenceNotFound(f"Service {old_name!r} not found")
    services[index] = new_name
    return services


def delete_service(settings: Dict, name: str) -> List[str]:
    """Remove every catalog entry equal to name."""
    services = settings.get('services') or []
    if name not in services:
        raise PersistenceNotFound(f"Service {name!r} not found")
    settings['services'] = [s for s in services if s != name]
    return settings['services']

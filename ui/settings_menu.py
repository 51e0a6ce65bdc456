"""Settings menu: freelancer profile, rates and service catalog."""

from typing import Dict

import settings as settings_policy
from errors import InvoicerError
from time_calc import parse_amount
from ui.prompts import Prompter, numbered

FIELD_LABELS = {
    'name': 'Name',
    'business': 'Business Name',
    'email': 'Email',
    'phone': 'Phone',
    'address': 'Address',
    'website': 'Website',
    'hourlyInPerson': 'Hourly Rate (In-person)',
    'hourlyRemote': 'Hourly Rate (Remote)',
    'cancelHours': 'Cancel Fee (Hours)',
}


def _current_value(settings: Dict, field: str):
    if field in settings_policy.FREELANCER_FIELDS:
        return settings['freelancer'].get(field) or ''
    value = settings.get(field)
    return '' if value is None else f"{value:g}"


def manage_services(prompter: Prompter, settings: Dict):
    """Add, rename or delete catalog services. Saves after each change."""
    while True:
        services = settings.get('services') or []
        prompter.say("\nService Catalog:")
        prompter.say(numbered(services))

        choices = [("Add Service", 'add')]
        if services:
            choices += [("Rename Service", 'rename'), ("Delete Service", 'delete')]
        choices.append(("Back", 'back'))
        action = prompter.choose("Service Actions:", choices)

        try:
            if action == 'add':
                settings_policy.add_service(settings, prompter.ask("Service name", required=True))
            elif action == 'rename':
                old = prompter.choose("Select a service to rename:", [(s, s) for s in services])
                settings_policy.rename_service(settings, old, prompter.ask("New name", default=old, required=True))
            elif action == 'delete':
                name = prompter.choose("Select a service to delete:", [(s, s) for s in services])
                settings_policy.delete_service(settings, name)
            else:
                return
        except InvoicerError as e:
            prompter.say(e.message)
            continue
        settings_policy.save_settings(settings)


def configure_settings(prompter: Prompter) -> Dict:
    """Edit settings one field at a time. Each change is saved immediately."""
    settings = settings_policy.load_settings() or settings_policy.default_settings()

    while True:
        choices = [
            (f"{label}: {_current_value(settings, field) or 'not set'}", field)
            for field, label in FIELD_LABELS.items()
        ]
        choices.append((f"Service Catalog: {len(settings.get('services') or [])} service(s)", 'services'))
        choices.append(("Back to Main Menu", 'exit'))
        field = prompter.choose("Select a setting to edit:", choices)

        if field == 'exit':
            prompter.say("Settings update complete.\n")
            return settings
        if field == 'services':
            manage_services(prompter, settings)
            continue

        validate = parse_amount if field in settings_policy.NUMERIC_FIELDS else None
        value = prompter.ask(f'Enter new value for "{FIELD_LABELS[field]}"',
                             default=_current_value(settings, field), validate=validate, required=True)
        settings_policy.update_field(settings, field, value)
        settings_policy.save_settings(settings)
        prompter.say(f"Updated {FIELD_LABELS[field]}!")

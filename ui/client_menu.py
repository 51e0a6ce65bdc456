"""Client management menu."""

from typing import Dict, Optional

import db
from errors import ValidationError
from ui.prompts import Prompter

FIELD_LABELS = {
    'name': 'Name',
    'business': 'Business',
    'address': 'Address',
    'phone': 'Phone',
    'email': 'Email',
}


def client_label(client: Dict) -> str:
    return f"{client['name']} ({client['email']})"


def _validate_email(value: str) -> str:
    if '@' not in value:
        raise ValidationError("Enter a valid email address")
    return value


def create_client(prompter: Prompter) -> Optional[Dict]:
    """Prompt for a new client and save it. Returns the saved client."""
    data = {
        'name': prompter.ask("Client Name", required=True),
        'business': prompter.ask("Business Name"),
        'address': prompter.ask("Client Address"),
        'phone': prompter.ask("Client Phone"),
        'email': prompter.ask("Client Email", validate=_validate_email),
    }
    try:
        client_id = db.save_client(data)
    except ValidationError as e:
        prompter.say(f"Could not save client: {e.message}")
        return None
    client = db.get_client(client_id)
    prompter.say(f'Client "{client["name"]}" created.')
    return client


def select_client(prompter: Prompter, message: str = "Select a client:", allow_new: bool = True) -> Optional[Dict]:
    """Pick an existing client, or add a new one."""
    clients = db.get_clients(sort_by_name=True)
    if not clients:
        prompter.say("No clients found.")
        return create_client(prompter) if allow_new else None

    choices = [(client_label(c), c['id']) for c in clients]
    if allow_new:
        choices.append(("Add New Client", 'new'))
    choices.append(("Back", None))
    choice = prompter.choose(message, choices)
    if choice == 'new':
        return create_client(prompter)
    if choice is None:
        return None
    return db.get_client(choice)


def list_clients(prompter: Prompter):
    clients = db.get_clients(sort_by_name=True)
    if not clients:
        prompter.say("No clients found.")
        return
    prompter.say("\nClients:")
    for c in clients:
        details = ', '.join(filter(None, [c['business'], c['phone'], c['address']]))
        prompter.say(f"  {client_label(c)}" + (f" - {details}" if details else ''))


def edit_client(prompter: Prompter):
    """Edit a client's fields. Invoices already issued keep the old details."""
    client = select_client(prompter, "Select a client to edit:", allow_new=False)
    if not client:
        return

    while True:
        choices = [(f"{label}: {client[field] or '[empty]'}", field) for field, label in FIELD_LABELS.items()]
        choices.append(("Done editing", 'done'))
        field = prompter.choose(f'Choose a field to update for "{client["name"]}":', choices)
        if field == 'done':
            break
        validate = _validate_email if field == 'email' else None
        client[field] = prompter.ask(f"New {FIELD_LABELS[field]}", default=client[field],
                                     validate=validate, required=field in ('name', 'email'))

    db.update_client(client['id'], client)
    prompter.say(f'Client "{client["name"]}" updated successfully.')


def delete_client(prompter: Prompter):
    client = select_client(prompter, "Select a client to delete:", allow_new=False)
    if not client:
        return
    if prompter.confirm("Are you sure you want to delete this client? This action is permanent.", default=False):
        db.delete_client(client['id'])
        prompter.say("Client deleted.")
    else:
        prompter.say("Deletion cancelled.")


def client_management_menu(prompter: Prompter):
    while True:
        action = prompter.choose("Client Management", [
            ("Add Client", 'add'),
            ("View Clients", 'list'),
            ("Edit Client", 'edit'),
            ("Delete Client", 'delete'),
            ("Back to Main Menu", 'back'),
        ])
        if action == 'add':
            create_client(prompter)
        elif action == 'list':
            list_clients(prompter)
        elif action == 'edit':
            edit_client(prompter)
        elif action == 'delete':
            delete_client(prompter)
        else:
            return

"""Team accounts, admin password and portal settings."""

from __future__ import annotations

from typing import Optional

from . import log
from .backend import BackendService
from .constants import ROLE_DESCRIPTIONS, ROLE_LABELS, SubUserRole
from .errors import ValidationError
from .models import SubUser
from .session import AdminSession
from .validation import require_matching_passwords, require_password, require_text


def role_label(role_text: str) -> str:
    """Display label for a role, falling back to the raw text."""
    return ROLE_LABELS.get(role_text, role_text)


def role_description(role_text: str) -> str:
    return ROLE_DESCRIPTIONS.get(role_text, "")


def parse_role(role_text: str) -> SubUserRole:
    try:
        return SubUserRole(role_text)
    except ValueError as exc:
        raise ValidationError(f"Unknown role: {role_text}") from exc


async def load_sub_users(backend: BackendService, session: AdminSession) -> list[SubUser]:
    return await backend.get_all_sub_users(session.require_token())


async def create_sub_user(
    backend: BackendService,
    session: AdminSession,
    email: Optional[str],
    password: Optional[str],
    role: SubUserRole | str = SubUserRole.STORE_MANAGER,
) -> SubUser:
    """Create a team account with the given role.

    Raises:
        ValidationError: If email or password is blank, the password is too
            short, or the role is unknown.
    """

    address = require_text(email, "Please enter email and password")
    require_text(password, "Please enter email and password")
    secret = require_password(password)
    role_value = parse_role(role).value
    await backend.create_sub_user(session.require_token(), address, secret, role_value)
    log.info("Sub-user %s created with role %s", address, role_value)
    return SubUser(email=address, role_text=role_value, active=True)


async def toggle_sub_user(backend: BackendService, session: AdminSession, user: SubUser) -> None:
    await backend.toggle_sub_user(session.require_token(), user.email)
    log.info("Sub-user %s toggled from active=%s", user.email, user.active)


async def change_sub_user_password(
    backend: BackendService,
    session: AdminSession,
    email: str,
    new_password: Optional[str],
) -> None:
    secret = require_password(new_password)
    await backend.change_sub_user_password(session.require_token(), email, secret)
    log.info("Password changed for sub-user %s", email)


async def change_admin_password(
    backend: BackendService,
    session: AdminSession,
    new_password: Optional[str],
    confirmation: Optional[str],
) -> None:
    """Change the master admin password after checking the confirmation."""
    secret = require_matching_passwords(new_password, confirmation)
    await backend.change_admin_password(session.require_token(), secret)
    log.info("Master admin password changed")


async def save_webhook_url(backend: BackendService, session: AdminSession, url: Optional[str]) -> str:
    """Store the order-notification webhook URL."""
    cleaned = require_text(url, "Please enter a webhook URL")
    await backend.set_webhook_url(session.require_token(), cleaned)
    log.info("Webhook URL updated")
    return cleaned


__all__ = [
    "role_label",
    "role_description",
    "parse_role",
    "load_sub_users",
    "create_sub_user",
    "toggle_sub_user",
    "change_sub_user_password",
    "change_admin_password",
    "save_webhook_url",
]

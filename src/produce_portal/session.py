"""Explicit login sessions.

A session is created by one of the ``login_*`` coroutines, handed to every
component that needs to call the backend on the user's behalf, and cleared by
:meth:`Session.close` at logout. Nothing about the logged-in user lives in
module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from . import log
from .backend import BackendService
from .constants import PrincipalKind
from .errors import NotFound, SessionClosed
from .models import StoreInfo
from .validation import require_text


@dataclass
class Session:
    """Token plus identity of whoever logged in."""

    kind: PrincipalKind
    token: Optional[str] = field(default=None, repr=False)

    @property
    def is_open(self) -> bool:
        return self.token is not None

    def require_token(self) -> str:
        """Return the token or raise :class:`SessionClosed` after logout."""
        if self.token is None:
            raise SessionClosed("Session expired. Please log in again.")
        return self.token

    def close(self) -> None:
        """Forget the token and any identity details captured at login."""
        log.info("Closing %s session", self.kind.value)
        self.token = None
        self._clear_identity()

    def _clear_identity(self) -> None:
        return None


@dataclass
class CustomerSession(Session):
    """A store's storefront session with the details shown on orders."""

    store_number: str = ""
    company_name: str = ""
    address: str = ""
    gst_number: Optional[str] = None

    def _clear_identity(self) -> None:
        self.store_number = ""
        self.company_name = ""
        self.address = ""
        self.gst_number = None


@dataclass
class AdminSession(Session):
    """A back-office session for the master admin or a sub-user."""

    email: str = ""
    role_text: Optional[str] = None

    @property
    def is_master(self) -> bool:
        return self.kind is PrincipalKind.MASTER_ADMIN

    @property
    def role_label(self) -> str:
        return "Master Admin" if self.is_master else "Sub-User"

    def _clear_identity(self) -> None:
        self.email = ""
        self.role_text = None


async def find_store(backend: BackendService, store_number: str) -> StoreInfo:
    """Look up a store before asking for its password.

    Raises:
        ValidationError: If ``store_number`` is blank.
        NotFound: If the backend knows no such store.
    """
    number = require_text(store_number, "Please enter your store number")
    info = await backend.get_customer(number)
    if info is None:
        log.warning("Store lookup failed for '%s'", number)
        raise NotFound("Store not found. Please check your store number.")
    return info


async def login_customer(backend: BackendService, store: StoreInfo, password: str) -> CustomerSession:
    """Log a store in and capture its details for order placement."""
    require_text(password, "Please enter your password")
    token = await backend.customer_login(store.store_number, password)
    log.info("Customer session opened for store '%s'", store.store_number)
    return CustomerSession(
        kind=PrincipalKind.CUSTOMER,
        token=token,
        store_number=store.store_number,
        company_name=store.company_name,
        address=store.address,
        gst_number=store.gst_number or None,
    )


async def login_admin(backend: BackendService, email: str, password: str) -> AdminSession:
    """Log the master admin in."""
    address = require_text(email, "Please enter email and password")
    require_text(password, "Please enter email and password")
    token = await backend.admin_login(address, password)
    log.info("Master admin session opened for '%s'", address)
    return AdminSession(kind=PrincipalKind.MASTER_ADMIN, token=token, email=address)


async def login_sub_user(
    backend: BackendService,
    email: str,
    password: str,
    *,
    role_text: Optional[str] = None,
) -> AdminSession:
    """Log a team account in."""
    address = require_text(email, "Please enter email and password")
    require_text(password, "Please enter email and password")
    token = await backend.sub_user_login(address, password)
    log.info("Sub-user session opened for '%s'", address)
    return AdminSession(kind=PrincipalKind.SUB_USER, token=token, email=address, role_text=role_text)


__all__ = [
    "Session",
    "CustomerSession",
    "AdminSession",
    "find_store",
    "login_customer",
    "login_admin",
    "login_sub_user",
]

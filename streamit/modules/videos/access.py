"""Access policy for video items.

Each ``require_*`` check returns ``None`` when the principal is allowed and raises
the specific denial otherwise. The ``can_*`` helpers are boolean wrappers for
call sites that filter rather than reject (listing, event delivery).

Anonymous callers are represented by ``None``.
"""
from typing import Protocol
from streamit.core.errors import (
    Forbidden, ForbiddenTenantMismatch, InsufficientRole, StreamitError, Unauthenticated,
)
from streamit.core.security import Principal, ROLE_ADMIN, ROLE_EDITOR, ROLE_VIEWER


class Guarded(Protocol):
    owner_id: str | None
    visibility: str
    tenant: str | None


def _is_owner(item: Guarded, principal: Principal) -> bool:
    return item.owner_id is not None and str(item.owner_id) == str(principal.id)


def require_view(item: Guarded, principal: Principal | None) -> None:
    """Tenant scope is checked before visibility.

    A tenant-scoped item is never shown to anonymous callers, public or not:
    they get 401 and must identify themselves so their tenant can be compared.
    Listing applies the same rule, so anonymous listings only contain public
    items without a tenant.
    """
    if item.tenant:
        if principal is None:
            raise Unauthenticated()
        if not principal.is_admin and principal.tenant != item.tenant:
            raise ForbiddenTenantMismatch()
    if item.visibility == "public":
        return
    if principal is None:
        raise Unauthenticated()
    if not (_is_owner(item, principal) or principal.is_admin):
        raise Forbidden()


def require_mutate(item: Guarded, principal: Principal | None) -> None:
    if principal is None:
        raise Unauthenticated()
    if not (_is_owner(item, principal) or principal.is_admin):
        raise Forbidden()


def require_patch(principal: Principal | None) -> None:
    if principal is None:
        raise Unauthenticated()
    if principal.role not in (ROLE_EDITOR, ROLE_ADMIN):
        raise InsufficientRole()


def require_upload(principal: Principal | None) -> None:
    # Anonymous uploads stay allowed; only read-only accounts are turned away.
    if principal is not None and principal.role == ROLE_VIEWER:
        raise InsufficientRole("insufficient role to upload")


def _allowed(check, *args) -> bool:
    try:
        check(*args)
    except StreamitError:
        return False
    return True


def can_view(item: Guarded, principal: Principal | None) -> bool:
    return _allowed(require_view, item, principal)


def can_mutate(item: Guarded, principal: Principal | None) -> bool:
    return _allowed(require_mutate, item, principal)


def can_upload(principal: Principal | None) -> bool:
    return _allowed(require_upload, principal)

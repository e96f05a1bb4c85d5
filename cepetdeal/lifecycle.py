# cepetdeal/lifecycle.py
"""Listing status transitions and the permission rules around them.

    PENDING --mark_active (admin)--> ACTIVE --mark_sold (owner/admin)--> SOLD

Nothing moves a listing back to PENDING. Only ACTIVE and SOLD listings are
public; only PENDING listings may be deleted by their owner.
"""
import enum
from typing import Dict, Optional

from .errors import DomainError, Forbidden, ValidationError
from .models import ListingStatus, Role

PUBLIC_STATUSES = (ListingStatus.ACTIVE, ListingStatus.SOLD)


class ListingAction(str, enum.Enum):
    MARK_SOLD = "mark_sold"
    MARK_ACTIVE = "mark_active"


def parse_action(value: Optional[str]) -> ListingAction:
    try:
        return ListingAction(value)
    except ValueError:
        raise ValidationError("Invalid action", field="action") from None


def is_admin(role: Optional[Role]) -> bool:
    return role == Role.ADMIN


def transition(current: ListingStatus, action: ListingAction, role: Optional[Role], is_owner: bool) -> ListingStatus:
    """Return the status `action` moves a listing to, or raise.

    Raises Forbidden when the requester may not perform the action at all and
    DomainError when the action is not legal from `current`.
    """
    admin = is_admin(role)
    if action == ListingAction.MARK_SOLD:
        if not (is_owner or admin):
            raise Forbidden()
        if current != ListingStatus.ACTIVE:
            raise DomainError(
                "Hanya iklan dengan status Aktif yang dapat ditandai sebagai Terjual",
                code="LISTING_NOT_ACTIVE",
            )
        return ListingStatus.SOLD
    if action == ListingAction.MARK_ACTIVE:
        if not admin:
            raise Forbidden("Hanya admin yang dapat mengaktifkan iklan")
        return ListingStatus.ACTIVE
    raise ValueError(f"unhandled listing action {action!r}")


def can_view(status: ListingStatus, role: Optional[Role], is_owner: bool) -> bool:
    return status in PUBLIC_STATUSES or is_owner or is_admin(role)


def check_delete(status: ListingStatus, role: Optional[Role], is_owner: bool) -> None:
    if is_admin(role):
        return
    if status != ListingStatus.PENDING:
        # public listings are admin-only to delete, whoever asks
        raise Forbidden(
            "Iklan yang sudah aktif atau terjual tidak dapat dihapus demi kebaikan SEO. "
            "Hubungi admin jika perlu menghapus iklan ini.",
            code="CANNOT_DELETE_ACTIVE_LISTING",
        )
    if not is_owner:
        raise Forbidden()


def initial_status(role: Optional[Role]) -> ListingStatus:
    return ListingStatus.ACTIVE if is_admin(role) else ListingStatus.PENDING


def owner_capabilities(status: ListingStatus) -> Dict[str, bool]:
    return {
        "can_edit": status == ListingStatus.ACTIVE,
        "can_delete": status == ListingStatus.PENDING,
        "can_mark_sold": status == ListingStatus.ACTIVE,
    }

# cepetdeal/accounts.py
"""User profiles, usernames, dealer profiles and the admin back-office."""
import os
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from dotenv import load_dotenv
from sqlalchemy.orm import Session
from . import crud, schemas
from .errors import Conflict, Forbidden, NotFound, RateLimited, ValidationError
from .lifecycle import PUBLIC_STATUSES
from .models import ListingStatus, ReportStatus, ReviewStatus, Role, User
from .services import listing_summary
from .utils import as_utc, logger, slugify, utcnow

load_dotenv()

USERNAME_COOLDOWN_DAYS = int(os.getenv("USERNAME_COOLDOWN_DAYS", "30"))
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
COMPANY_NAME_EDIT_LIMIT = 1
DEALER_LISTING_FILTERS = {
    "active": (ListingStatus.ACTIVE,),
    "sold": (ListingStatus.SOLD,),
    "all": PUBLIC_STATUSES,
}


def profile(db: Session, user: User) -> Dict[str, Any]:
    body = schemas.UserOut.model_validate(user).model_dump(mode="json")
    body["dealer"] = schemas.DealerOut.model_validate(user.dealer).model_dump(mode="json") if user.dealer else None
    body["active_listings_count"] = crud.count_listings(db, user_id=user.id, status=ListingStatus.ACTIVE)
    body["favorites_count"] = crud.count_favorites(db, user.id)
    body["unread_messages_count"] = crud.count_unread(db, user.id)
    return body


def update_profile(db: Session, user: User, payload: schemas.ProfileUpdate) -> User:
    updates = {}
    if payload.name:
        updates["name"] = payload.name.strip()
    if payload.phone is not None:
        updates["phone"] = payload.phone.strip() or None
    return crud.update_user(db, user, updates)


def validate_username(username: Optional[str]) -> str:
    if not username:
        raise ValidationError("Username diperlukan", field="username")
    if not USERNAME_RE.match(username):
        raise ValidationError(
            "Username harus 3-20 karakter, hanya huruf, angka, dan underscore", field="username"
        )
    if username[0].isdigit():
        raise ValidationError("Username tidak boleh dimulai dengan angka", field="username")
    return username


def username_available(db: Session, username: str, exclude_user_id: Optional[int] = None) -> bool:
    existing = crud.get_user_by_username(db, username)
    return existing is None or existing.id == exclude_user_id


def username_status(user: User, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Whether `user` may change their username yet.

    The cooldown counts from the last change, or from account creation when
    the username was never changed. Users without a username may set one
    straight away.
    """
    if not user.username:
        return {"can_update": True, "has_username": False}
    now = now or utcnow()
    last = as_utc(user.username_updated_at or user.created_at)
    days_since = (now - last).days
    status = {
        "can_update": days_since >= USERNAME_COOLDOWN_DAYS,
        "has_username": True,
        "current_username": user.username,
        "last_updated": last.isoformat(),
        "days_since_last_update": days_since,
    }
    if not status["can_update"]:
        status["remaining_days"] = USERNAME_COOLDOWN_DAYS - days_since
        status["next_update_date"] = (last + timedelta(days=USERNAME_COOLDOWN_DAYS)).isoformat()
    return status


def update_username(db: Session, user: User, username: Optional[str], now: Optional[datetime] = None) -> User:
    username = validate_username(username)
    now = now or utcnow()
    status = username_status(user, now)
    if not status["can_update"]:
        days = status["remaining_days"]
        raise RateLimited(
            f"Username dapat diubah lagi dalam {days} hari.",
            code="USERNAME_COOLDOWN",
            remaining_days=days,
        )
    if not username_available(db, username, exclude_user_id=user.id):
        raise Conflict("Username sudah digunakan", field="username")
    user = crud.update_user(db, user, {"username": username, "username_updated_at": now})
    logger.info("User %s changed username to %s", user.id, username)
    return user


# dealers

def apply_dealer(db: Session, user: User, payload: schemas.DealerApply):
    if user.dealer is not None:
        raise Conflict("Anda sudah memiliki profil dealer")
    name = (payload.company_name or "").strip()
    if len(name) < 2:
        raise ValidationError("Nama showroom minimal 2 karakter", field="company_name")
    if not payload.city or not payload.city.strip():
        raise ValidationError("Kota wajib diisi", field="city")
    slug = f"{slugify(name)}-{slugify(payload.city)}"
    if crud.get_dealer_by_slug(db, slug):
        slug = f"{slug}-{user.id}"
    dealer = crud.create_dealer(db, {
        "user_id": user.id,
        "company_name": name,
        "slug": slug,
        "address": payload.address,
        "city": payload.city.strip(),
        "description": payload.description,
    })
    logger.info("Dealer application %s submitted by user %s", dealer.id, user.id)
    return dealer


def own_dealer(user: User) -> Dict[str, Any]:
    dealer = user.dealer
    if dealer is None:
        raise NotFound("Dealer profile not found")
    body = schemas.DealerOut.model_validate(dealer).model_dump(mode="json")
    body["can_edit_company_name"] = dealer.company_name_edit_count < COMPANY_NAME_EDIT_LIMIT
    return body


def update_dealer_profile(db: Session, user: User, payload: schemas.DealerProfileUpdate) -> Dict[str, Any]:
    """Edit the caller's showroom; the company name may change only once, the slug never."""
    dealer = user.dealer
    if dealer is None:
        raise NotFound("Dealer profile not found")
    if payload.company_name is not None:
        name = payload.company_name.strip()
        if len(name) < 2:
            raise ValidationError("Nama showroom minimal 2 karakter", field="company_name")
        if name != dealer.company_name:
            if dealer.company_name_edit_count >= COMPANY_NAME_EDIT_LIMIT:
                raise Forbidden(
                    "Nama showroom hanya dapat diubah 1 kali untuk keperluan SEO",
                    code="COMPANY_NAME_LOCKED",
                    can_edit=False,
                    edit_count=dealer.company_name_edit_count,
                )
            dealer.company_name = name
            dealer.company_name_edit_count += 1
            dealer.company_name_edited_at = utcnow()
    if payload.city is not None:
        if not payload.city.strip():
            raise ValidationError("Kota wajib diisi", field="city")
        dealer.city = payload.city.strip()
    if payload.address is not None:
        dealer.address = payload.address.strip() or None
    if payload.description is not None:
        dealer.description = payload.description.strip() or None
    db.commit()
    db.refresh(dealer)
    logger.info("Dealer %s profile updated by user %s", dealer.id, user.id)
    return own_dealer(user)


def _public_dealer(db: Session, dealer, listing_status: str, page: int, limit: int) -> Dict[str, Any]:
    statuses = DEALER_LISTING_FILTERS.get((listing_status or "active").lower())
    if statuses is None:
        raise ValidationError("Status iklan harus active, sold atau all", field="listing_status")
    page = max(page, 1)
    limit = min(max(limit, 1), 50)
    res = crud.dealer_listings(db, dealer.user_id, statuses, skip=(page - 1) * limit, limit=limit)
    total = res["total"]
    body = schemas.DealerOut.model_validate(dealer).model_dump(mode="json")
    body["listings"] = [listing_summary(l) for l in res["items"]]
    body["pagination"] = {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
        "has_more": page * limit < total,
    }
    return body


def public_dealer(db: Session, dealer_id: int, listing_status: str = "active", page: int = 1,
                  limit: int = 12) -> Dict[str, Any]:
    dealer = crud.get_dealer(db, dealer_id)
    if not dealer:
        raise NotFound("Dealer not found")
    return _public_dealer(db, dealer, listing_status, page, limit)


def dealer_by_slug(db: Session, slug: str, listing_status: str = "active", page: int = 1,
                   limit: int = 12) -> Dict[str, Any]:
    dealer = crud.get_dealer_by_slug(db, slug)
    if not dealer:
        raise NotFound("Dealer not found")
    return _public_dealer(db, dealer, listing_status, page, limit)


def verify_dealer(db: Session, dealer_id: Optional[int], action: Optional[str]):
    if not dealer_id:
        raise ValidationError("Dealer ID is required", field="id")
    if action not in ("approve", "reject"):
        raise ValidationError("Action must be approve or reject", field="action")
    dealer = crud.get_dealer(db, dealer_id)
    if not dealer:
        raise NotFound("Dealer not found")
    if action == "approve":
        dealer.verified = True
        dealer.verified_at = utcnow()
        if dealer.user.role not in (Role.DEALER, Role.ADMIN):
            dealer.user.role = Role.DEALER
    else:
        dealer.verified = False
        dealer.verified_at = None
    db.commit()
    db.refresh(dealer)
    logger.info("Dealer %s %sd", dealer.id, action)
    return dealer


def toggle_finance(db: Session, user_id: int) -> bool:
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFound("User not found")
    user = crud.update_user(db, user, {"finance_enabled": not user.finance_enabled})
    logger.info("Finance feature for user %s set to %s", user.id, user.finance_enabled)
    return user.finance_enabled


def set_role(db: Session, user_id: Optional[int], role: Optional[str]) -> User:
    if not user_id or not role:
        raise ValidationError("Missing required fields", field="id" if not user_id else "role")
    try:
        new_role = Role(role.upper())
    except ValueError:
        raise ValidationError("Invalid role", field="role") from None
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFound("User not found")
    return crud.update_user(db, user, {"role": new_role})


def admin_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    today = crud.start_of_day((now or utcnow()).date())
    by_status = crud.listings_by_status(db)
    return {
        "total_users": crud.count_users(db),
        "total_listings": sum(by_status.values()),
        "total_dealers": crud.count_dealers(db),
        "pending_listings": by_status.get(ListingStatus.PENDING.value, 0),
        "active_listings": by_status.get(ListingStatus.ACTIVE.value, 0),
        "sold_listings": by_status.get(ListingStatus.SOLD.value, 0),
        "pending_dealers": crud.count_dealers(db, verified=False),
        "pending_reports": crud.count_reports(db, ReportStatus.PENDING),
        "pending_reviews": crud.count_reviews(db, ReviewStatus.PENDING),
        "today_users": crud.count_users(db, since=today),
        "listings_by_status": by_status,
        "users_by_role": crud.users_by_role(db),
    }

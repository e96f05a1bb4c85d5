# cepetdeal/services.py
"""Listing lifecycle and sales operations.

Each function takes the request's session and the acting user, applies the
ownership/role rules from `lifecycle.py` and raises `errors.*` on refusal.
"""
import os
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv
from sqlalchemy.orm import Session
from . import crud, finance, lifecycle, schemas
from .errors import DomainError, Forbidden, NotFound, ValidationError
from .lifecycle import ListingAction
from .models import (
    BodyType, Condition, FuelType, Listing, ListingStatus, Receipt, Role, Transmission, User,
)
from .utils import listing_slug, logger, utcnow

load_dotenv()

MIN_LISTING_IMAGES = int(os.getenv("MIN_LISTING_IMAGES", "3"))
MAX_COMPARE = 3

REQUIRED_LISTING_FIELDS = [
    "brand", "model", "year", "transmission", "fuel_type", "body_type",
    "color", "price", "title", "description",
]


def _parse_enum(enum_cls, value, field: str):
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise ValidationError(f"Nilai {field} tidak valid", field=field) from None


def _is_owner(listing: Listing, user: Optional[User]) -> bool:
    return user is not None and listing.user_id == user.id


def _role(user: Optional[User]) -> Optional[Role]:
    return user.role if user is not None else None


def listing_summary(listing: Listing) -> Dict[str, Any]:
    return {
        "id": listing.id,
        "title": listing.title,
        "slug": listing.slug,
        "brand": listing.brand.name,
        "model": listing.model.name,
        "year": listing.year,
        "price": int(listing.price),
        "condition": listing.condition.value,
        "status": listing.status.value,
        "transmission": listing.transmission.value,
        "fuel_type": listing.fuel_type.value,
        "body_type": listing.body_type.value,
        "mileage": listing.mileage,
        "color": listing.color,
        "location": listing.location,
        "images": listing.images or [],
        "image": (listing.images or [None])[0],
        "featured": listing.featured,
        "views": listing.views,
        "created_at": listing.created_at.isoformat() if listing.created_at else None,
    }


def create_listing(db: Session, user: User, payload: schemas.ListingCreate, now_ms: Optional[int] = None) -> Listing:
    data = payload.model_dump()
    missing = [f for f in REQUIRED_LISTING_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    condition = _parse_enum(Condition, payload.condition or "USED", "condition")
    if condition == Condition.NEW and user.role != Role.ADMIN:
        raise Forbidden("Hanya admin yang dapat membuat iklan mobil baru")

    images = [i for i in (payload.images or []) if i]
    if len(images) < MIN_LISTING_IMAGES:
        raise ValidationError(f"Minimal {MIN_LISTING_IMAGES} foto diperlukan", field="images")

    if payload.price <= 0:
        raise ValidationError("Harga harus lebih dari 0", field="price")
    if condition == Condition.NEW:
        mileage = 0
    else:
        mileage = payload.mileage or 0
        if mileage < 0:
            raise ValidationError("Kilometer tidak boleh negatif", field="mileage")

    brand = crud.get_brand_by_name(db, payload.brand)
    if not brand:
        raise ValidationError("Merk mobil tidak valid", field="brand")
    model = crud.get_model_by_name(db, brand.id, payload.model)
    if not model:
        raise ValidationError("Model mobil tidak valid", field="model")

    description = payload.description
    if payload.variant:
        description += f"\n\nVarian: {payload.variant}"
    if payload.negotiable is False:
        description += "\n\nHarga Fixed (Tidak Bisa Nego)"

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    listing = crud.create_listing(db, {
        "title": payload.title.strip(),
        "slug": listing_slug(payload.title, now_ms),
        "brand_id": brand.id,
        "model_id": model.id,
        "user_id": user.id,
        "year": payload.year,
        "condition": condition,
        "transmission": _parse_enum(Transmission, payload.transmission, "transmission"),
        "fuel_type": _parse_enum(FuelType, payload.fuel_type, "fuel_type"),
        "body_type": _parse_enum(BodyType, payload.body_type, "body_type"),
        "color": payload.color,
        "mileage": mileage,
        "price": payload.price,
        "description": description.strip(),
        "location": payload.location or "Indonesia",
        "images": images,
        "status": lifecycle.initial_status(user.role),
    })
    logger.info("Listing %s created by user %s with status %s", listing.slug, user.id, listing.status.value)
    return listing


def view_listing(db: Session, slug: str, viewer: Optional[User]) -> Dict[str, Any]:
    listing = crud.get_listing_by_slug(db, slug)
    if not listing:
        raise NotFound("Listing not found")
    if not lifecycle.can_view(listing.status, _role(viewer), _is_owner(listing, viewer)):
        # hidden listings look exactly like missing ones
        raise NotFound("Listing not available")

    views = crud.increment_views(db, listing.id)
    db.refresh(listing)
    seller = listing.user
    detail = listing_summary(listing)
    detail.update({
        "views": views,
        "description": listing.description or "",
        "seller": {
            "id": seller.id,
            "name": seller.name,
            "type": "DEALER" if seller.role == Role.DEALER else "PERSONAL",
            "verified": bool(seller.dealer and seller.dealer.verified),
            "phone": seller.phone,
            "member_since": str(seller.created_at.year) if seller.created_at else None,
        },
        "related_cars": [listing_summary(r) for r in crud.related_listings(db, listing)],
    })
    return detail


def delete_listing(db: Session, slug: str, user: User) -> None:
    listing = crud.get_listing_by_slug(db, slug)
    if not listing:
        raise NotFound("Listing not found")
    lifecycle.check_delete(listing.status, user.role, _is_owner(listing, user))
    receipts = crud.count_listing_receipts(db, listing.id)
    crud.delete_listing(db, listing)
    logger.info("Listing %s deleted by user %s (%d receipt(s) kept)", slug, user.id, receipts)


def _apply_transition(db: Session, listing: Listing, action: ListingAction, user: User, commit: bool = True) -> ListingStatus:
    current = listing.status
    target = lifecycle.transition(current, action, user.role, _is_owner(listing, user))
    expected = ListingStatus.ACTIVE if action == ListingAction.MARK_SOLD else None
    changed = crud.set_listing_status(db, listing.id, target, expected=expected, commit=commit)
    if not changed:
        # another request moved or removed the listing between our read and this update
        if action == ListingAction.MARK_SOLD:
            raise DomainError(
                "Hanya iklan dengan status Aktif yang dapat ditandai sebagai Terjual",
                code="LISTING_NOT_ACTIVE",
            )
        raise NotFound("Listing not found")
    logger.info("Listing %s %s -> %s by user %s", listing.id, current.value, target.value, user.id)
    return target


def change_listing_status(db: Session, listing_id: Optional[int], action: Optional[str], user: User) -> Listing:
    if not listing_id or not action:
        raise ValidationError("Missing required fields", field="id" if not listing_id else "action")
    listing = crud.get_listing(db, listing_id)
    if not listing:
        raise NotFound("Listing not found")
    if not (_is_owner(listing, user) or user.role == Role.ADMIN):
        raise Forbidden()
    _apply_transition(db, listing, lifecycle.parse_action(action), user)
    db.refresh(listing)
    return listing


def admin_set_status(db: Session, listing_id: Optional[int], status: Optional[str], admin: User) -> Listing:
    if not listing_id or not status:
        raise ValidationError("Missing required fields", field="id" if not listing_id else "status")
    target = _parse_enum(ListingStatus, status, "status")
    listing = crud.get_listing(db, listing_id)
    if not listing:
        raise NotFound("Listing not found")
    if target == ListingStatus.PENDING:
        raise DomainError("Iklan tidak dapat dikembalikan ke status Menunggu", code="INVALID_TRANSITION")
    action = ListingAction.MARK_ACTIVE if target == ListingStatus.ACTIVE else ListingAction.MARK_SOLD
    _apply_transition(db, listing, action, admin)
    db.refresh(listing)
    return listing


def my_listings(db: Session, user: User) -> List[Dict[str, Any]]:
    items = []
    for listing, inquiries in crud.list_user_listings(db, user.id):
        row = schemas.ListingOut.model_validate(listing).model_dump(mode="json")
        row["brand"] = listing.brand.name
        row["model"] = listing.model.name
        row["inquiries"] = inquiries
        row.update(lifecycle.owner_capabilities(listing.status))
        items.append(row)
    return items


def search_listings(db: Session, filters: Dict[str, Any], sort: str = "newest", page: int = 1, limit: int = 12) -> Dict[str, Any]:
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    parsed = dict(filters)
    for key, enum_cls in (("condition", Condition), ("transmission", Transmission),
                          ("fuel_type", FuelType), ("body_type", BodyType)):
        if parsed.get(key):
            parsed[key] = _parse_enum(enum_cls, parsed[key], key)
    res = crud.search_listings(db, skip=(page - 1) * limit, limit=limit, filters=parsed, sort=sort)
    total = res["total"]
    return {
        "items": [listing_summary(l) for l in res["items"]],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


COMPARE_ROWS = [
    ("brand", "Merk"), ("model", "Model"), ("year", "Tahun"), ("price", "Harga"),
    ("condition", "Kondisi"), ("mileage", "Kilometer"), ("transmission", "Transmisi"),
    ("fuel_type", "Bahan Bakar"), ("body_type", "Tipe Bodi"), ("color", "Warna"),
    ("location", "Lokasi"),
]


def compare_listings(db: Session, ids: List[int]) -> Dict[str, Any]:
    """Side-by-side view of up to three public listings, in the order asked for."""
    ids = list(dict.fromkeys(ids))
    if not ids:
        raise ValidationError("Pilih minimal satu mobil untuk dibandingkan", field="ids")
    if len(ids) > MAX_COMPARE:
        raise ValidationError(f"Maksimal {MAX_COMPARE} mobil dapat dibandingkan", field="ids")
    found = {l.id: l for l in crud.get_active_listings(db, ids)}
    listings = [listing_summary(found[i]) for i in ids if i in found]
    rows = [
        {"key": key, "label": label, "values": [l[key] for l in listings]}
        for key, label in COMPARE_ROWS
    ]
    return {"listings": listings, "rows": rows}


# receipts

FINANCE_DISABLED = "Fitur keuangan belum diaktifkan. Silakan hubungi admin."


def _require_finance(user: User) -> None:
    if not user.finance_enabled:
        raise Forbidden(FINANCE_DISABLED)


def serialize_receipt(receipt: Receipt) -> Dict[str, Any]:
    body = schemas.ReceiptOut.model_validate(receipt).model_dump(mode="json")
    body["total_paid"] = receipt.total_price - receipt.remaining_payment
    body["listing"] = listing_summary(receipt.listing) if receipt.listing else None
    return body


def vehicle_snapshot(listing: Listing) -> Dict[str, Any]:
    return {
        "brand": listing.brand.name,
        "model": listing.model.name,
        "year": listing.year,
        "transmission": listing.transmission.value,
        "color": listing.color,
    }


def vehicle_label(receipt: Receipt) -> str:
    v = receipt.vehicle or {}
    return " ".join(str(v[k]) for k in ("brand", "model", "year") if v.get(k))


def create_receipt(db: Session, user: User, payload: schemas.ReceiptCreate, today: Optional[datetime] = None) -> Dict[str, Any]:
    """Record a sale and, unless told otherwise, mark the listing SOLD.

    Both writes share one transaction: if the listing cannot be sold the
    receipt is not kept either.
    """
    _require_finance(user)
    if not payload.listing_id:
        raise ValidationError("Missing required fields", field="listing_id")
    listing = crud.get_listing(db, payload.listing_id)
    if not listing:
        raise NotFound("Listing not found")
    if listing.user_id != user.id:
        raise Forbidden()

    price = int(listing.price)
    sale = finance.validate_receipt_input(
        price, payload.payment_method, payload.buyer_name, payload.buyer_address,
        down_payment=payload.down_payment, tanda_jadi=payload.tanda_jadi,
    )
    # a sale is only recorded against an ACTIVE listing, even when it stays listed
    lifecycle.transition(listing.status, ListingAction.MARK_SOLD, user.role, True)

    amounts = finance.compute_payment(price, sale["payment_method"], sale["down_payment"], sale["tanda_jadi"])
    day = (today or utcnow()).date()
    try:
        receipt = crud.add_receipt(db, {
            "receipt_number": finance.receipt_number(day, crud.next_receipt_sequence(db, day)),
            "listing_id": listing.id,
            "dealer_id": user.id,
            "payment_method": sale["payment_method"],
            "tanda_jadi": sale["tanda_jadi"],
            "down_payment": sale["down_payment"],
            "buyer_name": sale["buyer_name"],
            "buyer_address": sale["buyer_address"],
            "total_price": amounts["total_price"],
            "remaining_payment": amounts["remaining_payment"],
            "vehicle": vehicle_snapshot(listing),
        })
        if payload.mark_as_sold:
            _apply_transition(db, listing, ListingAction.MARK_SOLD, user, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(receipt)
    db.refresh(listing)
    logger.info("Receipt %s created for listing %s (%s)", receipt.receipt_number, listing.id,
                receipt.payment_method.value)
    body = serialize_receipt(receipt)
    body["listing_status"] = listing.status.value
    return body


def get_own_receipt(db: Session, receipt_id: int, user: User) -> Receipt:
    receipt = crud.get_receipt(db, receipt_id)
    if not receipt:
        raise NotFound("Receipt not found")
    if receipt.dealer_id != user.id:
        raise Forbidden()
    return receipt


def delete_receipt(db: Session, receipt_id: int, user: User) -> None:
    receipt = get_own_receipt(db, receipt_id, user)
    crud.delete_receipt(db, receipt)
    logger.info("Receipt %s deleted by user %s", receipt.receipt_number, user.id)


def bulk_delete_receipts(db: Session, ids: List[int], user: User) -> int:
    if not ids:
        raise ValidationError("Invalid request: ids array is required", field="ids")
    count = crud.bulk_delete_receipts(db, user.id, ids)
    logger.info("User %s bulk-deleted %d receipt(s)", user.id, count)
    return count


# finance dashboard

def finance_stats(db: Session, user: User, range_key: str = "30d", start_date: Optional[date] = None,
                  end_date: Optional[date] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Sales totals for the dealer's receipts in the window, against the window before it."""
    _require_finance(user)
    start, end = finance.resolve_period(range_key, start_date, end_date, now)
    current = finance.sales_summary(crud.receipts_between(db, user.id, start, end))
    before = finance.previous_period(start, end)
    previous = finance.sales_summary(crud.receipts_between(db, user.id, *before)) if before else None
    return {
        "range": (range_key or "30d").lower(),
        "start": start.isoformat() if start else None,
        "end": end.isoformat(),
        "stats": current,
        "comparison": finance.compare_summaries(current, previous),
    }


def finance_transactions(db: Session, user: User, range_key: str = "30d", start_date: Optional[date] = None,
                         end_date: Optional[date] = None, page: int = 1, limit: int = 10,
                         sort_by: str = "created_at", sort_order: str = "desc",
                         now: Optional[datetime] = None) -> Dict[str, Any]:
    _require_finance(user)
    if sort_by not in crud.RECEIPT_SORTS:
        raise ValidationError("Kolom pengurutan tidak valid", field="sort_by")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("Urutan harus asc atau desc", field="sort_order")
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    start, end = finance.resolve_period(range_key, start_date, end_date, now)
    res = crud.page_receipts(db, user.id, start, end, sort_by=sort_by,
                             descending=sort_order == "desc", skip=(page - 1) * limit, limit=limit)
    rows = []
    for r in res["items"]:
        rows.append({
            "id": r.id,
            "receipt_number": r.receipt_number,
            "vehicle": vehicle_label(r),
            "buyer": r.buyer_name,
            "payment_method": r.payment_method.value,
            "total_price": r.total_price,
            "down_payment": r.down_payment,
            "tanda_jadi": r.tanda_jadi or 0,
            "remaining_payment": r.remaining_payment,
            "collected": r.total_price - r.remaining_payment,
            "created_at": r.created_at.isoformat() if r.created_at else None,
            "listing_id": r.listing_id,
        })
    total = res["total"]
    return {
        "transactions": rows,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        },
    }

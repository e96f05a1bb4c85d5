# cepetdeal/api/routes.py
from datetime import date
from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import crud, finance, schemas, services
from ..db import get_db
from ..errors import ValidationError
from ..models import User
from ..receipts import renderer
from .deps import get_current_user, get_optional_user

router = APIRouter()

@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/brands")
def brands(db: Session = Depends(get_db)):
    return [
        {"id": b.id, "name": b.name, "slug": b.slug,
         "models": [{"id": m.id, "name": m.name, "slug": m.slug} for m in b.models]}
        for b in crud.list_brands(db)
    ]

# listings

@router.get("/listings")
def my_listings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return services.my_listings(db, user)


@router.post("/listings", status_code=201)
def create_listing(payload: schemas.ListingCreate, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    listing = services.create_listing(db, user, payload)
    return {
        "success": True,
        "message": "Iklan berhasil diterbitkan" if listing.status.value == "ACTIVE"
        else "Iklan berhasil diajukan dan menunggu review admin",
        "listing": schemas.ListingOut.model_validate(listing),
    }


@router.put("/listings")
def update_listing_status(payload: schemas.ListingActionIn, user: User = Depends(get_current_user),
                          db: Session = Depends(get_db)):
    listing = services.change_listing_status(db, payload.id, payload.action, user)
    messages = {
        "mark_sold": "Iklan berhasil ditandai sebagai Terjual",
        "mark_active": "Iklan berhasil diaktifkan",
    }
    return {
        "success": True,
        "message": messages[payload.action],
        "listing": schemas.ListingOut.model_validate(listing),
    }


@router.get("/listings/public")
def public_listings(
    page: int = 1,
    limit: int = 12,
    sort: str = "newest",
    id: Optional[int] = Query(None),
    condition: Optional[str] = Query(None),
    brand: Optional[str] = Query(None),
    transmission: Optional[str] = Query(None),
    fuel_type: Optional[str] = Query(None),
    body_type: Optional[str] = Query(None),
    min_price: Optional[int] = Query(None),
    max_price: Optional[int] = Query(None),
    min_year: Optional[int] = Query(None),
    max_year: Optional[int] = Query(None),
    min_mileage: Optional[int] = Query(None),
    max_mileage: Optional[int] = Query(None),
    location: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    filters = {
        "id": id,
        "condition": condition,
        "brand": brand,
        "transmission": transmission,
        "fuel_type": fuel_type,
        "body_type": body_type,
        "min_price": min_price,
        "max_price": max_price,
        "min_year": min_year,
        "max_year": max_year,
        "min_mileage": min_mileage,
        "max_mileage": max_mileage,
        "location": location,
        "search": search,
    }
    return services.search_listings(db, filters, sort=sort, page=page, limit=limit)


@router.get("/listings/compare")
def compare_listings(ids: List[int] = Query([]), db: Session = Depends(get_db)):
    return services.compare_listings(db, ids)


@router.get("/listings/{slug}")
def get_listing(slug: str, viewer: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    return services.view_listing(db, slug, viewer)


@router.delete("/listings/{slug}")
def delete_listing(slug: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    services.delete_listing(db, slug, user)
    return {"success": True, "message": "Iklan berhasil dihapus"}

# receipts

@router.get("/receipts")
def list_receipts(listing_id: Optional[int] = None, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    return [services.serialize_receipt(r) for r in crud.list_receipts(db, user.id, listing_id)]


@router.post("/receipts")
def create_receipt(payload: schemas.ReceiptCreate, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    return services.create_receipt(db, user, payload)


@router.post("/receipts/bulk-delete")
def bulk_delete_receipts(payload: schemas.BulkDeleteIn, user: User = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    count = services.bulk_delete_receipts(db, payload.ids, user)
    return {"success": True, "message": f"Successfully deleted {count} receipt(s)", "deleted_count": count}


@router.get("/receipts/{receipt_id}")
def get_receipt(receipt_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return services.serialize_receipt(services.get_own_receipt(db, receipt_id, user))


@router.delete("/receipts/{receipt_id}")
def delete_receipt(receipt_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    services.delete_receipt(db, receipt_id, user)
    return {"success": True, "message": "Receipt deleted successfully"}


@router.get("/receipts/{receipt_id}/pdf", response_class=HTMLResponse)
def receipt_document(receipt_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    receipt = services.get_own_receipt(db, receipt_id, user)
    return HTMLResponse(
        renderer.render(receipt),
        headers={"Content-Disposition": f'inline; filename="{renderer.filename(receipt)}"'},
    )

# finance dashboard

@router.get("/dashboard/finance/stats")
def finance_stats(
    range_key: str = Query("30d", alias="range"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return services.finance_stats(db, user, range_key, start_date, end_date)


@router.get("/dashboard/finance/transactions")
def finance_transactions(
    range_key: str = Query("30d", alias="range"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return services.finance_transactions(
        db, user, range_key, start_date, end_date,
        page=page, limit=limit, sort_by=sort_by, sort_order=sort_order,
    )

# calculator

@router.get("/calculator/options")
def calculator_options():
    return {
        "down_payment_percent": finance.DOWN_PAYMENT_OPTIONS,
        "tenor_months": finance.TENOR_OPTIONS,
        "interest_rates": finance.INTEREST_RATE_OPTIONS,
    }


@router.get("/calculator/credit")
def credit_estimate(
    price: int,
    dp_percent: float = 30,
    tenor: int = 60,
    rate: float = 5.5,
    method: str = "flat",
):
    if method == "flat":
        result = finance.flat_rate_installment(price, dp_percent, tenor, rate)
    elif method == "annuity":
        result = finance.annuity_installment(price, dp_percent, tenor, rate)
    else:
        raise ValidationError("Metode perhitungan harus flat atau annuity", field="method")
    return {"price": price, "dp_percent": dp_percent, "tenor": tenor, "rate": rate, "method": method, **result}

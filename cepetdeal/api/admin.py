# cepetdeal/api/admin.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import accounts, crud, moderation, schemas, services, social
from ..db import get_db
from ..errors import ValidationError
from ..models import ListingStatus, Role, User
from .deps import require_admin

router = APIRouter(prefix="/admin")


@router.get("/stats")
def stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return accounts.admin_stats(db)


@router.get("/listings")
def moderation_queue(status: Optional[str] = None, skip: int = 0, limit: int = 50,
                     admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    wanted = None
    if status:
        try:
            wanted = ListingStatus(status.upper())
        except ValueError:
            raise ValidationError("Invalid status", field="status") from None
    res = crud.list_listings_by_status(db, wanted, skip=skip, limit=limit)
    return {"total": res["total"], "items": [services.listing_summary(l) for l in res["items"]]}


@router.patch("/listings")
def set_listing_status(payload: schemas.AdminListingStatus, admin: User = Depends(require_admin),
                       db: Session = Depends(get_db)):
    listing = services.admin_set_status(db, payload.id, payload.status, admin)
    return {"success": True, "listing": {"id": listing.id, "status": listing.status.value}}


@router.get("/dealers", response_model=List[schemas.DealerOut])
def dealers(verified: Optional[bool] = None, admin: User = Depends(require_admin),
            db: Session = Depends(get_db)):
    return crud.list_dealers(db, verified=verified)


@router.put("/dealers")
def verify_dealer(payload: schemas.DealerActionIn, admin: User = Depends(require_admin),
                  db: Session = Depends(get_db)):
    dealer = accounts.verify_dealer(db, payload.id, payload.action)
    return {
        "success": True,
        "message": "Dealer approved successfully" if dealer.verified else "Dealer rejected",
        "dealer": schemas.DealerOut.model_validate(dealer),
    }


@router.post("/dealers/{user_id}/toggle-finance")
def toggle_finance(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"success": True, "finance_enabled": accounts.toggle_finance(db, user_id)}


@router.get("/users")
def users(role: Optional[str] = None, skip: int = 0, limit: int = 50,
          admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    wanted = None
    if role:
        try:
            wanted = Role(role.upper())
        except ValueError:
            raise ValidationError("Invalid role", field="role") from None
    res = crud.list_users(db, wanted, skip=skip, limit=limit)
    return {"total": res["total"], "items": [schemas.UserOut.model_validate(u) for u in res["items"]]}


@router.put("/users", response_model=schemas.UserOut)
def set_role(payload: schemas.RoleUpdate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return accounts.set_role(db, payload.id, payload.role)


@router.post("/articles", status_code=201, response_model=schemas.ArticleOut)
def create_article(payload: schemas.ArticleCreate, admin: User = Depends(require_admin),
                   db: Session = Depends(get_db)):
    return social.create_article(db, admin, payload)


@router.post("/testimonials/{testimonial_id}/approve", response_model=schemas.TestimonialOut)
def approve_testimonial(testimonial_id: int, admin: User = Depends(require_admin),
                        db: Session = Depends(get_db)):
    return social.approve_testimonial(db, testimonial_id)


@router.get("/reports")
def reports(status: Optional[str] = None, reportable_type: Optional[str] = None, skip: int = 0, limit: int = 50,
            admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return moderation.admin_reports(db, status, reportable_type, skip=skip, limit=limit)


@router.put("/reports/{report_id}", response_model=schemas.ReportOut)
def review_report(report_id: int, payload: schemas.ReportUpdate, admin: User = Depends(require_admin),
                  db: Session = Depends(get_db)):
    return moderation.review_report(db, report_id, admin, payload)


@router.delete("/reports/{report_id}")
def delete_report(report_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    moderation.delete_report(db, report_id)
    return {"success": True, "message": "Report deleted successfully"}


@router.get("/reviews")
def reviews(status: Optional[str] = None, skip: int = 0, limit: int = 50,
            admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return moderation.admin_reviews(db, status, skip=skip, limit=limit)


@router.put("/reviews/{review_id}", response_model=schemas.ReviewOut)
def moderate_review(review_id: int, payload: schemas.ReviewUpdate, admin: User = Depends(require_admin),
                    db: Session = Depends(get_db)):
    return moderation.moderate_review(db, review_id, payload)


@router.delete("/reviews/{review_id}", response_model=schemas.ReviewOut)
def hide_review(review_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return moderation.hide_review(db, review_id)

# cepetdeal/moderation.py
"""User reports and seller reviews, plus the admin queues that handle them.

Reports start PENDING and are closed as RESOLVED or DISMISSED. Reviews start
PENDING too; only APPROVED reviews are shown publicly.
"""
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from . import crud, schemas
from .errors import Conflict, NotFound, ValidationError
from .models import (
    Article, Listing, Message, Report, ReportReason, ReportStatus, ReportableType, Review,
    ReviewStatus, User,
)
from .utils import logger, utcnow

REPORT_TARGETS = {
    ReportableType.LISTING: Listing,
    ReportableType.USER: User,
    ReportableType.MESSAGE: Message,
    ReportableType.ARTICLE: Article,
}
CLOSED_REPORT_STATUSES = (ReportStatus.RESOLVED, ReportStatus.DISMISSED)


def _parse(enum_cls, value, field: str):
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise ValidationError(f"Nilai {field} tidak valid", field=field) from None


def _page(res: Dict[str, Any], schema, skip: int, limit: int) -> Dict[str, Any]:
    return {
        "total": res["total"],
        "skip": skip,
        "limit": limit,
        "items": [schema.model_validate(r).model_dump(mode="json") for r in res["items"]],
    }

# reports

def submit_report(db: Session, reporter: User, payload: schemas.ReportCreate) -> Report:
    for field in ("reportable_type", "reportable_id", "reason"):
        if not getattr(payload, field):
            raise ValidationError("Missing required fields", field=field)
    kind = _parse(ReportableType, payload.reportable_type, "reportable_type")
    reason = _parse(ReportReason, payload.reason, "reason")
    if db.get(REPORT_TARGETS[kind], payload.reportable_id) is None:
        raise NotFound("Reported item not found")
    # one open report per reporter and item; a closed one may be filed again
    if crud.find_open_report(db, reporter.id, kind, payload.reportable_id):
        raise Conflict("You have already reported this item", code="DUPLICATE_REPORT")
    report = crud.create_report(db, {
        "reporter_id": reporter.id,
        "reportable_type": kind,
        "reportable_id": payload.reportable_id,
        "reason": reason,
        "description": (payload.description or "").strip() or None,
    })
    logger.info("Report %s filed by user %s against %s %s", report.id, reporter.id, kind.value,
                payload.reportable_id)
    return report


def my_reports(db: Session, user: User, status: Optional[str] = None):
    wanted = _parse(ReportStatus, status, "status") if status else None
    return crud.list_reports(db, reporter_id=user.id, status=wanted, limit=100)["items"]


def admin_reports(db: Session, status: Optional[str] = None, reportable_type: Optional[str] = None,
                  skip: int = 0, limit: int = 50) -> Dict[str, Any]:
    wanted = _parse(ReportStatus, status, "status") if status else None
    kind = _parse(ReportableType, reportable_type, "reportable_type") if reportable_type else None
    res = crud.list_reports(db, status=wanted, reportable_type=kind, skip=skip, limit=limit)
    return _page(res, schemas.ReportOut, skip, limit)


def review_report(db: Session, report_id: int, admin: User, payload: schemas.ReportUpdate) -> Report:
    report = crud.get_report(db, report_id)
    if not report:
        raise NotFound("Report not found")
    if not payload.status:
        raise ValidationError("Status is required", field="status")
    report.status = _parse(ReportStatus, payload.status, "status")
    if payload.notes is not None:
        report.notes = payload.notes.strip() or None
    if report.status in CLOSED_REPORT_STATUSES:
        report.reviewed_by = admin.id
        report.reviewed_at = utcnow()
    db.commit()
    db.refresh(report)
    logger.info("Report %s set to %s by admin %s", report.id, report.status.value, admin.id)
    return report


def delete_report(db: Session, report_id: int) -> None:
    report = crud.get_report(db, report_id)
    if not report:
        raise NotFound("Report not found")
    crud.delete_row(db, report)
    logger.info("Report %s deleted", report_id)

# reviews

def submit_review(db: Session, reviewer: User, payload: schemas.ReviewCreate) -> Review:
    content = (payload.content or "").strip()
    if not payload.seller_id:
        raise ValidationError("Missing required fields", field="seller_id")
    if payload.rating is None:
        raise ValidationError("Missing required fields", field="rating")
    if not content:
        raise ValidationError("Missing required fields", field="content")
    if not 1 <= payload.rating <= 5:
        raise ValidationError("Rating harus antara 1 dan 5", field="rating")
    if payload.seller_id == reviewer.id:
        raise ValidationError("Cannot review yourself", field="seller_id")
    if not crud.get_user(db, payload.seller_id):
        raise NotFound("Seller not found")
    if payload.listing_id:
        listing = crud.get_listing(db, payload.listing_id)
        if not listing:
            raise NotFound("Listing not found")
        if listing.user_id != payload.seller_id:
            raise ValidationError("Iklan ini bukan milik penjual tersebut", field="listing_id")
    listing_id = payload.listing_id or None
    if crud.find_review(db, reviewer.id, payload.seller_id, listing_id):
        raise Conflict("You have already reviewed this seller", code="DUPLICATE_REVIEW")
    review = crud.create_review(db, {
        "reviewer_id": reviewer.id,
        "seller_id": payload.seller_id,
        "listing_id": listing_id,
        "rating": payload.rating,
        "title": (payload.title or "").strip() or None,
        "content": content,
        "status": ReviewStatus.PENDING,
    })
    logger.info("Review %s of seller %s submitted by user %s", review.id, payload.seller_id, reviewer.id)
    return review


def public_reviews(db: Session, seller_id: Optional[int] = None, listing_id: Optional[int] = None,
                   skip: int = 0, limit: int = 20) -> Dict[str, Any]:
    res = crud.list_reviews(db, seller_id=seller_id, listing_id=listing_id, status=ReviewStatus.APPROVED,
                            skip=skip, limit=limit)
    body = _page(res, schemas.ReviewOut, skip, limit)
    body["average_rating"] = round(float(res["average"]), 1) if res["average"] is not None else None
    return body


def admin_reviews(db: Session, status: Optional[str] = None, skip: int = 0, limit: int = 50) -> Dict[str, Any]:
    wanted = _parse(ReviewStatus, status, "status") if status else None
    return _page(crud.list_reviews(db, status=wanted, skip=skip, limit=limit), schemas.ReviewOut, skip, limit)


def moderate_review(db: Session, review_id: int, payload: schemas.ReviewUpdate) -> Review:
    review = crud.get_review(db, review_id)
    if not review:
        raise NotFound("Review not found")
    if not payload.status and payload.response is None:
        raise ValidationError("Nothing to update", field="status")
    if payload.status:
        review.status = _parse(ReviewStatus, payload.status, "status")
    if payload.response is not None:
        review.response = payload.response.strip() or None
    db.commit()
    db.refresh(review)
    logger.info("Review %s moderated, status %s", review.id, review.status.value)
    return review


def hide_review(db: Session, review_id: int) -> Review:
    """Admin removal keeps the row but takes it out of every public listing."""
    review = crud.get_review(db, review_id)
    if not review:
        raise NotFound("Review not found")
    review.status = ReviewStatus.HIDDEN
    db.commit()
    db.refresh(review)
    logger.info("Review %s hidden", review.id)
    return review

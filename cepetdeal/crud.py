# cepetdeal/crud.py
"""Query and persistence helpers for every table.

Business rules live in `services.py`; these functions only read and write.
Helpers that take a `commit` flag can be composed into one transaction by
passing `commit=False` and committing at the end.
"""
from datetime import date, datetime, time, timezone
from sqlalchemy import and_, or_, func
from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, Optional
from .models import (
    Article, Brand, CarModel, Dealer, Favorite, Listing, ListingStatus, Message,
    Receipt, ReceiptCounter, Report, ReportStatus, Review, ReviewStatus, Role,
    Testimonial, User,
)

# users

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.username) == username.lower()).first()

def list_users(db: Session, role: Optional[Role] = None, skip: int = 0, limit: int = 50):
    q = db.query(User)
    if role is not None:
        q = q.filter(User.role == role)
    total = q.count()
    items = q.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

def update_user(db: Session, user: User, updates: Dict[str, Any]) -> User:
    for k, v in updates.items():
        setattr(user, k, v)
    db.commit()
    db.refresh(user)
    return user

# catalogue

def get_brand_by_name(db: Session, name: str) -> Optional[Brand]:
    return db.query(Brand).filter(func.lower(Brand.name) == name.strip().lower()).first()

def get_model_by_name(db: Session, brand_id: int, name: str) -> Optional[CarModel]:
    return (
        db.query(CarModel)
        .filter(CarModel.brand_id == brand_id, func.lower(CarModel.name) == name.strip().lower())
        .first()
    )

def list_brands(db: Session) -> List[Brand]:
    return db.query(Brand).order_by(Brand.name).all()

# listings

def create_listing(db: Session, data: Dict[str, Any]) -> Listing:
    obj = Listing(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_listing(db: Session, listing_id: int) -> Optional[Listing]:
    return db.get(Listing, listing_id)

def get_listing_by_slug(db: Session, slug: str) -> Optional[Listing]:
    return db.query(Listing).filter(Listing.slug == slug).first()

def increment_views(db: Session, listing_id: int) -> int:
    # single UPDATE so concurrent viewers never lose an increment
    db.query(Listing).filter(Listing.id == listing_id).update(
        {Listing.views: Listing.views + 1}, synchronize_session=False
    )
    db.commit()
    return db.query(Listing.views).filter(Listing.id == listing_id).scalar()

def set_listing_status(db: Session, listing_id: int, status: ListingStatus,
                       expected: Optional[ListingStatus] = None, commit: bool = True) -> int:
    """Move a listing to `status`; with `expected`, only if it is still in that status.

    Returns the number of rows changed (0 when the guard did not match).
    """
    q = db.query(Listing).filter(Listing.id == listing_id)
    if expected is not None:
        q = q.filter(Listing.status == expected)
    changed = q.update({Listing.status: status}, synchronize_session=False)
    if commit:
        db.commit()
    return changed

def delete_listing(db: Session, obj: Listing) -> None:
    db.query(Favorite).filter(Favorite.listing_id == obj.id).delete(synchronize_session=False)
    db.query(Message).filter(Message.listing_id == obj.id).update(
        {Message.listing_id: None}, synchronize_session=False
    )
    db.query(Review).filter(Review.listing_id == obj.id).update(
        {Review.listing_id: None}, synchronize_session=False
    )
    db.query(Receipt).filter(Receipt.listing_id == obj.id).update(
        {Receipt.listing_id: None}, synchronize_session=False
    )
    db.delete(obj)
    db.commit()

def list_user_listings(db: Session, user_id: int):
    inquiries = (
        db.query(Message.listing_id, func.count(Message.id).label("n"))
        .group_by(Message.listing_id)
        .subquery()
    )
    rows = (
        db.query(Listing, func.coalesce(inquiries.c.n, 0))
        .outerjoin(inquiries, inquiries.c.listing_id == Listing.id)
        .filter(Listing.user_id == user_id)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .all()
    )
    return rows

def list_listings_by_status(db: Session, status: Optional[ListingStatus] = None, skip: int = 0, limit: int = 50):
    q = db.query(Listing)
    if status is not None:
        q = q.filter(Listing.status == status)
    total = q.count()
    items = q.order_by(Listing.created_at.desc(), Listing.id.desc()).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

SORTS = {
    "newest": (Listing.created_at.desc(), Listing.id.desc()),
    "price_asc": (Listing.price.asc(),),
    "price_desc": (Listing.price.desc(),),
    "year_desc": (Listing.year.desc(),),
    "mileage_asc": (Listing.mileage.asc(),),
    "views": (Listing.views.desc(),),
}

def search_listings(db: Session, skip: int = 0, limit: int = 12, filters: Dict = None, sort: str = "newest"):
    q = db.query(Listing).filter(Listing.status == ListingStatus.ACTIVE)
    if filters:
        conds = []
        if filters.get("id") is not None:
            conds.append(Listing.id == filters["id"])
        if filters.get("condition") is not None:
            conds.append(Listing.condition == filters["condition"])
        if filters.get("brand"):
            q = q.join(Brand, Brand.id == Listing.brand_id)
            conds.append(Brand.slug == filters["brand"].lower())
        if filters.get("transmission") is not None:
            conds.append(Listing.transmission == filters["transmission"])
        if filters.get("fuel_type") is not None:
            conds.append(Listing.fuel_type == filters["fuel_type"])
        if filters.get("body_type") is not None:
            conds.append(Listing.body_type == filters["body_type"])
        if filters.get("min_price") is not None:
            conds.append(Listing.price >= filters["min_price"])
        if filters.get("max_price") is not None:
            conds.append(Listing.price <= filters["max_price"])
        if filters.get("min_year") is not None:
            conds.append(Listing.year >= filters["min_year"])
        if filters.get("max_year") is not None:
            conds.append(Listing.year <= filters["max_year"])
        if filters.get("min_mileage") is not None:
            conds.append(Listing.mileage >= filters["min_mileage"])
        if filters.get("max_mileage") is not None:
            conds.append(Listing.mileage <= filters["max_mileage"])
        if filters.get("location"):
            conds.append(Listing.location.ilike(f"%{filters['location']}%"))
        if filters.get("search"):
            term = f"%{filters['search']}%"
            conds.append(or_(Listing.title.ilike(term), Listing.description.ilike(term)))
        if conds:
            q = q.filter(and_(*conds))
    total = q.count()
    items = q.order_by(*SORTS.get(sort, SORTS["newest"])).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

def get_active_listings(db: Session, ids: Iterable[int]) -> List[Listing]:
    ids = list(ids)
    if not ids:
        return []
    return db.query(Listing).filter(Listing.id.in_(ids), Listing.status == ListingStatus.ACTIVE).all()

def related_listings(db: Session, listing: Listing, limit: int = 3) -> List[Listing]:
    return (
        db.query(Listing)
        .filter(
            Listing.brand_id == listing.brand_id,
            Listing.id != listing.id,
            Listing.status == ListingStatus.ACTIVE,
        )
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .limit(limit)
        .all()
    )

def count_listings(db: Session, **filters) -> int:
    q = db.query(func.count(Listing.id))
    for k, v in filters.items():
        q = q.filter(getattr(Listing, k) == v)
    return q.scalar()

# receipts

def next_receipt_sequence(db: Session, day: date) -> int:
    """Hand out the next sequence for `day` without committing.

    The per-day counter row is locked for the rest of the transaction, so two
    sales never get the same number and a deleted receipt's number is never
    issued again. A missing counter starts from the day's highest existing
    receipt number.
    """
    key = f"{day:%Y%m%d}"
    counter = db.query(ReceiptCounter).filter(ReceiptCounter.day == key).with_for_update().first()
    if counter is None:
        prefix = f"RCP{key}"
        last = (
            db.query(func.max(Receipt.receipt_number))
            .filter(Receipt.receipt_number.like(f"{prefix}%"))
            .scalar()
        )
        counter = ReceiptCounter(day=key, last_sequence=int(last[len(prefix):]) if last else 0)
        db.add(counter)
    counter.last_sequence += 1
    db.flush()
    return counter.last_sequence

def add_receipt(db: Session, data: Dict[str, Any]) -> Receipt:
    obj = Receipt(**data)
    db.add(obj)
    db.flush()
    return obj

def get_receipt(db: Session, receipt_id: int) -> Optional[Receipt]:
    return db.get(Receipt, receipt_id)

def list_receipts(db: Session, dealer_id: int, listing_id: Optional[int] = None) -> List[Receipt]:
    q = db.query(Receipt).filter(Receipt.dealer_id == dealer_id)
    if listing_id is not None:
        q = q.filter(Receipt.listing_id == listing_id)
    return q.order_by(Receipt.created_at.desc(), Receipt.id.desc()).all()

def delete_receipt(db: Session, obj: Receipt) -> None:
    db.delete(obj)
    db.commit()

def bulk_delete_receipts(db: Session, dealer_id: int, ids: List[int]) -> int:
    count = (
        db.query(Receipt)
        .filter(Receipt.id.in_(ids), Receipt.dealer_id == dealer_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return count

def count_listing_receipts(db: Session, listing_id: int) -> int:
    return db.query(func.count(Receipt.id)).filter(Receipt.listing_id == listing_id).scalar()

def receipts_between(db: Session, dealer_id: int, start: Optional[datetime], end: datetime) -> List[Receipt]:
    q = db.query(Receipt).filter(Receipt.dealer_id == dealer_id, Receipt.created_at <= end)
    if start is not None:
        q = q.filter(Receipt.created_at >= start)
    return q.all()

RECEIPT_SORTS = {
    "created_at": Receipt.created_at,
    "total_price": Receipt.total_price,
    "remaining_payment": Receipt.remaining_payment,
    "receipt_number": Receipt.receipt_number,
}

def page_receipts(db: Session, dealer_id: int, start: Optional[datetime], end: datetime,
                  sort_by: str = "created_at", descending: bool = True, skip: int = 0, limit: int = 10):
    q = db.query(Receipt).filter(Receipt.dealer_id == dealer_id, Receipt.created_at <= end)
    if start is not None:
        q = q.filter(Receipt.created_at >= start)
    total = q.count()
    column = RECEIPT_SORTS[sort_by]
    order = (column.desc(), Receipt.id.desc()) if descending else (column.asc(), Receipt.id.asc())
    items = q.order_by(*order).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

# favorites

def get_favorite(db: Session, user_id: int, listing_id: int) -> Optional[Favorite]:
    return db.query(Favorite).filter(Favorite.user_id == user_id, Favorite.listing_id == listing_id).first()

def add_favorite(db: Session, user_id: int, listing_id: int) -> Favorite:
    obj = Favorite(user_id=user_id, listing_id=listing_id)
    db.add(obj)
    db.commit()
    return obj

def remove_favorite(db: Session, obj: Favorite) -> None:
    db.delete(obj)
    db.commit()

def list_favorite_listings(db: Session, user_id: int) -> List[Listing]:
    return (
        db.query(Listing)
        .join(Favorite, Favorite.listing_id == Listing.id)
        .filter(Favorite.user_id == user_id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        .all()
    )

def count_favorites(db: Session, user_id: int) -> int:
    return db.query(func.count(Favorite.id)).filter(Favorite.user_id == user_id).scalar()

# messages

def create_message(db: Session, data: Dict[str, Any]) -> Message:
    obj = Message(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_thread(db: Session, user_id: int, other_id: int) -> List[Message]:
    return (
        db.query(Message)
        .filter(or_(
            and_(Message.sender_id == user_id, Message.receiver_id == other_id),
            and_(Message.sender_id == other_id, Message.receiver_id == user_id),
        ))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )

def mark_read(db: Session, receiver_id: int, sender_id: Optional[int] = None) -> int:
    q = db.query(Message).filter(Message.receiver_id == receiver_id, Message.read_at.is_(None))
    if sender_id is not None:
        q = q.filter(Message.sender_id == sender_id)
    changed = q.update({Message.read_at: datetime.now(timezone.utc)}, synchronize_session=False)
    db.commit()
    return changed

def count_unread(db: Session, receiver_id: int) -> int:
    return (
        db.query(func.count(Message.id))
        .filter(Message.receiver_id == receiver_id, Message.read_at.is_(None))
        .scalar()
    )

def messages_for_user(db: Session, user_id: int) -> List[Message]:
    return (
        db.query(Message)
        .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .all()
    )

# dealers

def get_dealer(db: Session, dealer_id: int) -> Optional[Dealer]:
    return db.get(Dealer, dealer_id)

def get_dealer_by_slug(db: Session, slug: str) -> Optional[Dealer]:
    return db.query(Dealer).filter(Dealer.slug == slug).first()

def create_dealer(db: Session, data: Dict[str, Any]) -> Dealer:
    obj = Dealer(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def list_dealers(db: Session, verified: Optional[bool] = None) -> List[Dealer]:
    q = db.query(Dealer)
    if verified is not None:
        q = q.filter(Dealer.verified == verified)
    return q.order_by(Dealer.created_at.desc(), Dealer.id.desc()).all()

def count_dealers(db: Session, verified: Optional[bool] = None) -> int:
    q = db.query(func.count(Dealer.id))
    if verified is not None:
        q = q.filter(Dealer.verified == verified)
    return q.scalar()

def dealer_listings(db: Session, user_id: int, statuses: Iterable[ListingStatus], skip: int = 0, limit: int = 12):
    q = db.query(Listing).filter(Listing.user_id == user_id, Listing.status.in_(list(statuses)))
    total = q.count()
    items = q.order_by(Listing.created_at.desc(), Listing.id.desc()).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

# stats

def count_users(db: Session, since: Optional[datetime] = None) -> int:
    q = db.query(func.count(User.id))
    if since is not None:
        q = q.filter(User.created_at >= since)
    return q.scalar()

def listings_by_status(db: Session) -> Dict[str, int]:
    rows = db.query(Listing.status, func.count(Listing.id)).group_by(Listing.status).all()
    return {status.value: n for status, n in rows}

def users_by_role(db: Session) -> Dict[str, int]:
    rows = db.query(User.role, func.count(User.id)).group_by(User.role).all()
    return {role.value: n for role, n in rows}

def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)

# content

def list_articles(db: Session, published_only: bool = True) -> List[Article]:
    q = db.query(Article)
    if published_only:
        q = q.filter(Article.published.is_(True))
    return q.order_by(Article.created_at.desc(), Article.id.desc()).all()

def get_article_by_slug(db: Session, slug: str) -> Optional[Article]:
    return db.query(Article).filter(Article.slug == slug).first()

def create_article(db: Session, data: Dict[str, Any]) -> Article:
    obj = Article(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def list_testimonials(db: Session, approved_only: bool = True) -> List[Testimonial]:
    q = db.query(Testimonial)
    if approved_only:
        q = q.filter(Testimonial.approved.is_(True))
    return q.order_by(Testimonial.created_at.desc(), Testimonial.id.desc()).all()

def get_testimonial(db: Session, testimonial_id: int) -> Optional[Testimonial]:
    return db.get(Testimonial, testimonial_id)

def create_testimonial(db: Session, data: Dict[str, Any]) -> Testimonial:
    obj = Testimonial(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

# reports and reviews

def create_report(db: Session, data: Dict[str, Any]) -> Report:
    obj = Report(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_report(db: Session, report_id: int) -> Optional[Report]:
    return db.get(Report, report_id)

def find_open_report(db: Session, reporter_id: int, reportable_type, reportable_id: int) -> Optional[Report]:
    return (
        db.query(Report)
        .filter(
            Report.reporter_id == reporter_id,
            Report.reportable_type == reportable_type,
            Report.reportable_id == reportable_id,
            Report.status.in_([ReportStatus.PENDING, ReportStatus.REVIEWING]),
        )
        .first()
    )

def list_reports(db: Session, reporter_id: Optional[int] = None, status: Optional[ReportStatus] = None,
                 reportable_type=None, skip: int = 0, limit: int = 50):
    q = db.query(Report)
    if reporter_id is not None:
        q = q.filter(Report.reporter_id == reporter_id)
    if status is not None:
        q = q.filter(Report.status == status)
    if reportable_type is not None:
        q = q.filter(Report.reportable_type == reportable_type)
    total = q.count()
    items = q.order_by(Report.created_at.desc(), Report.id.desc()).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

def count_reports(db: Session, status: Optional[ReportStatus] = None) -> int:
    q = db.query(func.count(Report.id))
    if status is not None:
        q = q.filter(Report.status == status)
    return q.scalar()

def create_review(db: Session, data: Dict[str, Any]) -> Review:
    obj = Review(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_review(db: Session, review_id: int) -> Optional[Review]:
    return db.get(Review, review_id)

def find_review(db: Session, reviewer_id: int, seller_id: int, listing_id: Optional[int]) -> Optional[Review]:
    q = db.query(Review).filter(Review.reviewer_id == reviewer_id, Review.seller_id == seller_id)
    if listing_id is None:
        q = q.filter(Review.listing_id.is_(None))
    else:
        q = q.filter(Review.listing_id == listing_id)
    return q.first()

def list_reviews(db: Session, seller_id: Optional[int] = None, listing_id: Optional[int] = None,
                 status: Optional[ReviewStatus] = None, skip: int = 0, limit: int = 50):
    q = db.query(Review)
    if seller_id is not None:
        q = q.filter(Review.seller_id == seller_id)
    if listing_id is not None:
        q = q.filter(Review.listing_id == listing_id)
    if status is not None:
        q = q.filter(Review.status == status)
    total = q.count()
    average = q.with_entities(func.avg(Review.rating)).scalar()
    items = q.order_by(Review.created_at.desc(), Review.id.desc()).offset(skip).limit(limit).all()
    return {"total": total, "average": average, "items": items}

def count_reviews(db: Session, status: Optional[ReviewStatus] = None) -> int:
    q = db.query(func.count(Review.id))
    if status is not None:
        q = q.filter(Review.status == status)
    return q.scalar()

def delete_row(db: Session, obj) -> None:
    db.delete(obj)
    db.commit()

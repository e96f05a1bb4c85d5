# cepetdeal/api/content.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import crud, moderation, schemas, social
from ..db import get_db
from ..models import User
from .deps import get_current_user, get_optional_user

router = APIRouter()


@router.get("/articles", response_model=List[schemas.ArticleOut])
def articles(db: Session = Depends(get_db)):
    return crud.list_articles(db)


@router.get("/articles/{slug}", response_model=schemas.ArticleOut)
def article(slug: str, viewer: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    return social.published_article(db, slug, viewer)


@router.get("/testimonials", response_model=List[schemas.TestimonialOut])
def testimonials(db: Session = Depends(get_db)):
    return crud.list_testimonials(db)


@router.post("/testimonials", status_code=201, response_model=schemas.TestimonialOut)
def submit_testimonial(payload: schemas.TestimonialCreate, user: User = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    return social.submit_testimonial(db, user, payload)

# reports and reviews

@router.post("/reports", status_code=201, response_model=schemas.ReportOut)
def file_report(payload: schemas.ReportCreate, user: User = Depends(get_current_user),
                db: Session = Depends(get_db)):
    return moderation.submit_report(db, user, payload)


@router.get("/reports", response_model=List[schemas.ReportOut])
def my_reports(status: Optional[str] = None, user: User = Depends(get_current_user),
               db: Session = Depends(get_db)):
    return moderation.my_reports(db, user, status)


@router.get("/reviews")
def reviews(seller_id: Optional[int] = None, listing_id: Optional[int] = None, skip: int = 0, limit: int = 20,
            db: Session = Depends(get_db)):
    return moderation.public_reviews(db, seller_id=seller_id, listing_id=listing_id, skip=skip, limit=limit)


@router.post("/reviews", status_code=201, response_model=schemas.ReviewOut)
def submit_review(payload: schemas.ReviewCreate, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    return moderation.submit_review(db, user, payload)

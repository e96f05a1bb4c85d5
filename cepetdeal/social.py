# cepetdeal/social.py
"""Buyer/seller messaging, favorites and the editorial content pages."""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from . import crud, schemas
from .errors import NotFound, ValidationError
from .models import Message, Role, User
from .services import listing_summary
from .utils import logger, slugify, utcnow


def _user_card(user: User) -> Dict[str, Any]:
    return {"id": user.id, "name": user.name, "phone": user.phone}


def serialize_message(msg: Message) -> Dict[str, Any]:
    return {
        "id": msg.id,
        "sender": _user_card(msg.sender),
        "receiver": _user_card(msg.receiver),
        "listing": listing_summary(msg.listing) if msg.listing else None,
        "content": msg.content,
        "read_at": msg.read_at.isoformat() if msg.read_at else None,
        "created_at": msg.created_at.isoformat() if msg.created_at else None,
    }


def send_message(db: Session, sender: User, receiver_id: int, payload: schemas.MessageCreate) -> Message:
    content = (payload.content or "").strip()
    if not content:
        raise ValidationError("Message content is required", field="content")
    if receiver_id == sender.id:
        raise ValidationError("Tidak dapat mengirim pesan ke diri sendiri", field="receiver_id")
    if not crud.get_user(db, receiver_id):
        raise NotFound("Receiver not found")
    if payload.listing_id and not crud.get_listing(db, payload.listing_id):
        raise NotFound("Listing not found")
    msg = crud.create_message(db, {
        "sender_id": sender.id,
        "receiver_id": receiver_id,
        "listing_id": payload.listing_id or None,
        "content": content,
    })
    logger.info("Message %s sent from user %s to user %s", msg.id, sender.id, receiver_id)
    return msg


def thread(db: Session, user: User, other_id: int) -> List[Message]:
    if not crud.get_user(db, other_id):
        raise NotFound("User not found")
    messages = crud.get_thread(db, user.id, other_id)
    crud.mark_read(db, user.id, sender_id=other_id)
    return messages


def conversations(db: Session, user: User, unread_only: bool = False) -> List[Dict[str, Any]]:
    """One entry per counterpart, newest conversation first."""
    convs: Dict[int, Dict[str, Any]] = {}
    # newest first, so the first message seen per counterpart is the latest
    for msg in crud.messages_for_user(db, user.id):
        is_sender = msg.sender_id == user.id
        other = msg.receiver if is_sender else msg.sender
        conv = convs.get(other.id)
        if conv is None:
            conv = convs[other.id] = {
                "other_user": _user_card(other),
                "listing": listing_summary(msg.listing) if msg.listing else None,
                "last_message": msg.content,
                "last_message_at": msg.created_at.isoformat() if msg.created_at else None,
                "is_sender": is_sender,
                "unread_count": 0,
            }
        if not is_sender and msg.read_at is None:
            conv["unread_count"] += 1
    result = list(convs.values())
    if unread_only:
        result = [c for c in result if c["unread_count"] > 0]
    return result


def toggle_favorite(db: Session, user: User, listing_id: Optional[int]) -> bool:
    if not listing_id:
        raise ValidationError("Listing ID is required", field="listing_id")
    if not crud.get_listing(db, listing_id):
        raise NotFound("Listing not found")
    existing = crud.get_favorite(db, user.id, listing_id)
    if existing:
        crud.remove_favorite(db, existing)
        return False
    crud.add_favorite(db, user.id, listing_id)
    return True


def favorites(db: Session, user: User) -> List[Dict[str, Any]]:
    return [listing_summary(l) for l in crud.list_favorite_listings(db, user.id)]


# content

def create_article(db: Session, author: User, payload: schemas.ArticleCreate):
    if not payload.title or not payload.title.strip():
        raise ValidationError("Judul wajib diisi", field="title")
    if not payload.content or not payload.content.strip():
        raise ValidationError("Konten wajib diisi", field="content")
    slug = slugify(payload.title)
    if not slug:
        raise ValidationError("Judul harus mengandung huruf atau angka", field="title")
    if crud.get_article_by_slug(db, slug):
        slug = f"{slug}-{int(utcnow().timestamp())}"
    return crud.create_article(db, {
        "title": payload.title.strip(),
        "slug": slug,
        "excerpt": payload.excerpt,
        "content": payload.content,
        "published": payload.published,
        "author_id": author.id,
    })


def published_article(db: Session, slug: str, viewer: Optional[User] = None):
    article = crud.get_article_by_slug(db, slug)
    if not article or not (article.published or (viewer is not None and viewer.role == Role.ADMIN)):
        raise NotFound("Article not found")
    return article


def submit_testimonial(db: Session, user: User, payload: schemas.TestimonialCreate):
    if not payload.content or not payload.content.strip():
        raise ValidationError("Testimoni wajib diisi", field="content")
    if not 1 <= payload.rating <= 5:
        raise ValidationError("Rating harus antara 1 dan 5", field="rating")
    return crud.create_testimonial(db, {
        "user_id": user.id,
        "name": (payload.name or user.name).strip(),
        "role": payload.role,
        "content": payload.content.strip(),
        "rating": payload.rating,
        "approved": False,
    })


def approve_testimonial(db: Session, testimonial_id: int):
    testimonial = crud.get_testimonial(db, testimonial_id)
    if not testimonial:
        raise NotFound("Testimonial not found")
    testimonial.approved = True
    db.commit()
    db.refresh(testimonial)
    return testimonial

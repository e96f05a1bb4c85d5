# cepetdeal/api/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from .. import accounts, crud, schemas, social
from ..db import get_db
from ..models import User
from .deps import get_current_user

router = APIRouter()

# profile

@router.get("/users/me")
def me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return accounts.profile(db, user)


@router.put("/users/me", response_model=schemas.UserOut)
def update_me(payload: schemas.ProfileUpdate, user: User = Depends(get_current_user),
              db: Session = Depends(get_db)):
    return accounts.update_profile(db, user, payload)


@router.get("/users/me/can-update-username")
def can_update_username(user: User = Depends(get_current_user)):
    return accounts.username_status(user)


@router.put("/users/me/username", response_model=schemas.UserOut)
def update_username(payload: schemas.UsernameIn, user: User = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    return accounts.update_username(db, user, payload.username)


@router.post("/users/check-username")
def check_username(payload: schemas.UsernameIn, db: Session = Depends(get_db)):
    username = accounts.validate_username(payload.username)
    available = accounts.username_available(db, username)
    return {
        "available": available,
        "message": "Username tersedia" if available else "Username sudah digunakan",
    }

# dealers

@router.post("/dealers/apply", status_code=201, response_model=schemas.DealerOut)
def apply_dealer(payload: schemas.DealerApply, user: User = Depends(get_current_user),
                 db: Session = Depends(get_db)):
    return accounts.apply_dealer(db, user, payload)


@router.get("/dealer/profile")
def own_dealer_profile(user: User = Depends(get_current_user)):
    return accounts.own_dealer(user)


@router.patch("/dealer/profile")
def update_dealer_profile(payload: schemas.DealerProfileUpdate, user: User = Depends(get_current_user),
                          db: Session = Depends(get_db)):
    return {"success": True, "dealer": accounts.update_dealer_profile(db, user, payload)}


@router.get("/dealers/by-slug/{slug}")
def dealer_page(slug: str, listing_status: str = "active", page: int = 1, limit: int = 12,
                db: Session = Depends(get_db)):
    return accounts.dealer_by_slug(db, slug, listing_status, page, limit)


@router.get("/dealers/{dealer_id}")
def dealer_profile(dealer_id: int, listing_status: str = "active", page: int = 1, limit: int = 12,
                   db: Session = Depends(get_db)):
    return accounts.public_dealer(db, dealer_id, listing_status, page, limit)

# messages

@router.get("/messages")
def conversations(unread_only: bool = False, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    return social.conversations(db, user, unread_only=unread_only)


@router.get("/messages/unread")
def unread_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"unread_count": crud.count_unread(db, user.id)}


@router.put("/messages/unread")
def mark_all_read(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "marked": crud.mark_read(db, user.id)}


@router.get("/messages/{other_id}")
def thread(other_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [social.serialize_message(m) for m in social.thread(db, user, other_id)]


@router.post("/messages/{receiver_id}", status_code=201)
def send_message(receiver_id: int, payload: schemas.MessageCreate, user: User = Depends(get_current_user),
                 db: Session = Depends(get_db)):
    return social.serialize_message(social.send_message(db, user, receiver_id, payload))

# favorites

@router.get("/favorites")
def favorites(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return social.favorites(db, user)


@router.post("/favorites/toggle")
def toggle_favorite(payload: schemas.FavoriteToggle, user: User = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    favorited = social.toggle_favorite(db, user, payload.listing_id)
    return {
        "favorited": favorited,
        "message": "Added to favorites" if favorited else "Removed from favorites",
    }

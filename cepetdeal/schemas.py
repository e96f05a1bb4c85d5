# cepetdeal/schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from .models import (
    BodyType, Condition, FuelType, ListingStatus, PaymentMethod, ReportReason, ReportStatus,
    ReportableType, ReviewStatus, Role, Transmission,
)

Amount = Union[int, float, str]


class ListingCreate(BaseModel):
    # kept loose so missing/blank fields come back as field-level 400s from the service
    title: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    variant: Optional[str] = None
    year: Optional[int] = None
    condition: Optional[str] = "USED"
    transmission: Optional[str] = None
    fuel_type: Optional[str] = Field(None, alias="fuelType")
    body_type: Optional[str] = Field(None, alias="bodyType")
    color: Optional[str] = None
    mileage: Optional[int] = None
    price: Optional[int] = None
    negotiable: Optional[bool] = None
    location: Optional[str] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())


class ListingActionIn(BaseModel):
    id: Optional[int] = None
    action: Optional[str] = None


class ListingOut(BaseModel):
    id: int
    title: str
    slug: str
    brand_id: int
    model_id: int
    user_id: int
    year: int
    condition: Condition
    transmission: Transmission
    fuel_type: FuelType
    body_type: BodyType
    color: str
    mileage: int
    price: int
    description: Optional[str]
    location: str
    images: List[str]
    status: ListingStatus
    featured: bool
    views: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class AdminListingStatus(BaseModel):
    id: Optional[int] = None
    status: Optional[str] = None


class ReceiptCreate(BaseModel):
    listing_id: Optional[int] = Field(None, alias="listingId")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    tanda_jadi: Optional[Amount] = Field(None, alias="tandaJadi")
    down_payment: Optional[Amount] = Field(None, alias="downPayment")
    buyer_name: Optional[str] = Field(None, alias="buyerName")
    buyer_address: Optional[str] = Field(None, alias="buyerAddress")
    mark_as_sold: bool = Field(True, alias="markAsSold")

    model_config = ConfigDict(populate_by_name=True)


class ReceiptOut(BaseModel):
    id: int
    receipt_number: str
    listing_id: Optional[int]
    dealer_id: int
    payment_method: PaymentMethod
    tanda_jadi: Optional[int]
    down_payment: int
    buyer_name: str
    buyer_address: str
    total_price: int
    remaining_payment: int
    vehicle: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class BulkDeleteIn(BaseModel):
    ids: List[int] = []


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None


class UsernameIn(BaseModel):
    username: Optional[str] = None


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    phone: Optional[str]
    username: Optional[str]
    role: Role
    finance_enabled: bool
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class DealerApply(BaseModel):
    company_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    description: Optional[str] = None


class DealerOut(BaseModel):
    id: int
    user_id: int
    company_name: str
    slug: str
    address: Optional[str]
    city: Optional[str]
    description: Optional[str]
    verified: bool
    verified_at: Optional[datetime]
    company_name_edit_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class DealerProfileUpdate(BaseModel):
    company_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    description: Optional[str] = None


class DealerActionIn(BaseModel):
    id: Optional[int] = None
    action: Optional[str] = None


class RoleUpdate(BaseModel):
    id: Optional[int] = None
    role: Optional[str] = None


class MessageCreate(BaseModel):
    content: Optional[str] = None
    listing_id: Optional[int] = None


class FavoriteToggle(BaseModel):
    listing_id: Optional[int] = None


class ArticleCreate(BaseModel):
    title: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    published: bool = False


class ArticleOut(BaseModel):
    id: int
    title: str
    slug: str
    excerpt: Optional[str]
    content: str
    published: bool
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class TestimonialCreate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    content: Optional[str] = None
    rating: int = 5


class TestimonialOut(BaseModel):
    id: int
    name: str
    role: Optional[str]
    content: str
    rating: int
    approved: bool

    model_config = ConfigDict(from_attributes=True)


class ReportCreate(BaseModel):
    reportable_type: Optional[str] = None
    reportable_id: Optional[int] = None
    reason: Optional[str] = None
    description: Optional[str] = None


class ReportUpdate(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class ReportOut(BaseModel):
    id: int
    reporter_id: int
    reportable_type: ReportableType
    reportable_id: int
    reason: ReportReason
    description: Optional[str]
    status: ReportStatus
    notes: Optional[str]
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class ReviewCreate(BaseModel):
    seller_id: Optional[int] = None
    listing_id: Optional[int] = None
    rating: Optional[int] = None
    title: Optional[str] = None
    content: Optional[str] = None


class ReviewUpdate(BaseModel):
    status: Optional[str] = None
    response: Optional[str] = None


class ReviewOut(BaseModel):
    id: int
    reviewer_id: int
    seller_id: int
    listing_id: Optional[int]
    rating: int
    title: Optional[str]
    content: str
    status: ReviewStatus
    response: Optional[str]
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

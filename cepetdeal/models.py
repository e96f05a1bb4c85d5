# cepetdeal/models.py
"""SQLAlchemy ORM models for persisted entities.

Users, dealer profiles, the brand/model catalogue, listings and everything
hanging off a listing (receipts, messages, favorites), the community tables
(reports, reviews) and the editorial content tables.
"""
import enum
from sqlalchemy import (
    Column, Integer, BigInteger, Text, Boolean, TIMESTAMP, ForeignKey, Enum, JSON,
    UniqueConstraint, func, Index,
)
from sqlalchemy.orm import relationship
from .db import Base


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    DEALER = "DEALER"
    SELLER = "SELLER"
    BUYER = "BUYER"


class ListingStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"


class Condition(str, enum.Enum):
    NEW = "NEW"
    USED = "USED"


class Transmission(str, enum.Enum):
    MANUAL = "MANUAL"
    AUTOMATIC = "AUTOMATIC"
    CVT = "CVT"


class FuelType(str, enum.Enum):
    PETROL = "PETROL"
    DIESEL = "DIESEL"
    HYBRID = "HYBRID"
    ELECTRIC = "ELECTRIC"


class BodyType(str, enum.Enum):
    SEDAN = "SEDAN"
    SUV = "SUV"
    MPV = "MPV"
    HATCHBACK = "HATCHBACK"
    PICKUP = "PICKUP"
    COUPE = "COUPE"
    CONVERTIBLE = "CONVERTIBLE"
    WAGON = "WAGON"
    VAN = "VAN"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CREDIT = "CREDIT"


class ReportableType(str, enum.Enum):
    LISTING = "LISTING"
    USER = "USER"
    MESSAGE = "MESSAGE"
    ARTICLE = "ARTICLE"


class ReportReason(str, enum.Enum):
    FRAUD = "FRAUD"
    SPAM = "SPAM"
    INAPPROPRIATE_CONTENT = "INAPPROPRIATE_CONTENT"
    FALSE_INFORMATION = "FALSE_INFORMATION"
    SCAM = "SCAM"
    OTHER = "OTHER"


class ReportStatus(str, enum.Enum):
    PENDING = "PENDING"
    REVIEWING = "REVIEWING"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class ReviewStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    HIDDEN = "HIDDEN"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(Text, nullable=False, unique=True, index=True)
    name = Column(Text, nullable=False)
    phone = Column(Text)
    username = Column(Text, unique=True)
    username_updated_at = Column(TIMESTAMP(timezone=True))
    role = Column(Enum(Role), nullable=False, default=Role.BUYER)
    finance_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    dealer = relationship("Dealer", back_populates="user", uselist=False)
    listings = relationship("Listing", back_populates="user")


class Dealer(Base):
    __tablename__ = "dealers"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    company_name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    address = Column(Text)
    city = Column(Text)
    description = Column(Text)
    verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(TIMESTAMP(timezone=True))
    company_name_edit_count = Column(Integer, nullable=False, default=0, server_default="0")
    company_name_edited_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="dealer")


class Brand(Base):
    __tablename__ = "brands"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False, unique=True)
    slug = Column(Text, nullable=False, unique=True)

    models = relationship("CarModel", back_populates="brand", order_by="CarModel.id")


class CarModel(Base):
    __tablename__ = "car_models"
    __table_args__ = (UniqueConstraint("brand_id", "slug"),)
    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=False)
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False)

    brand = relationship("Brand", back_populates="models")


class Listing(Base):
    __tablename__ = "listings"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=False)
    model_id = Column(Integer, ForeignKey("car_models.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    year = Column(Integer, nullable=False)
    condition = Column(Enum(Condition), nullable=False, default=Condition.USED)
    transmission = Column(Enum(Transmission), nullable=False)
    fuel_type = Column(Enum(FuelType), nullable=False)
    body_type = Column(Enum(BodyType), nullable=False)
    color = Column(Text, nullable=False)
    mileage = Column(Integer, nullable=False, default=0)
    price = Column(BigInteger, nullable=False)
    description = Column(Text)
    location = Column(Text, nullable=False, default="Indonesia")
    images = Column(JSON, nullable=False, default=list)
    status = Column(Enum(ListingStatus), nullable=False, default=ListingStatus.PENDING)
    featured = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    brand = relationship("Brand")
    model = relationship("CarModel")
    user = relationship("User", back_populates="listings")
    messages = relationship("Message", back_populates="listing")
    receipts = relationship("Receipt", back_populates="listing")
    favorites = relationship("Favorite", back_populates="listing", cascade="all, delete-orphan")


class Receipt(Base):
    __tablename__ = "receipts"
    id = Column(Integer, primary_key=True, index=True)
    receipt_number = Column(Text, nullable=False, unique=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="SET NULL"))
    dealer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    tanda_jadi = Column(BigInteger)
    down_payment = Column(BigInteger, nullable=False, default=0)
    buyer_name = Column(Text, nullable=False)
    buyer_address = Column(Text, nullable=False)
    total_price = Column(BigInteger, nullable=False)
    remaining_payment = Column(BigInteger, nullable=False)
    # brand, model, year, transmission and color as sold; survives listing removal
    vehicle = Column(JSON, nullable=False, default=dict)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    listing = relationship("Listing", back_populates="receipts")
    dealer = relationship("User")


class ReceiptCounter(Base):
    """Last receipt sequence handed out per UTC day (`YYYYMMDD`); never goes down."""
    __tablename__ = "receipt_counters"
    day = Column(Text, primary_key=True)
    last_sequence = Column(Integer, nullable=False, default=0)


class Message(Base):
    __tablename__ = "messages"
    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="SET NULL"))
    content = Column(Text, nullable=False)
    read_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])
    listing = relationship("Listing", back_populates="messages")


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "listing_id"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    listing = relationship("Listing", back_populates="favorites")


class Article(Base):
    __tablename__ = "articles"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True, index=True)
    excerpt = Column(Text)
    content = Column(Text, nullable=False)
    published = Column(Boolean, nullable=False, default=False)
    author_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class Testimonial(Base):
    __tablename__ = "testimonials"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    name = Column(Text, nullable=False)
    role = Column(Text)
    content = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False, default=5)
    approved = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class Report(Base):
    __tablename__ = "reports"
    id = Column(Integer, primary_key=True, index=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reportable_type = Column(Enum(ReportableType), nullable=False)
    reportable_id = Column(Integer, nullable=False)
    reason = Column(Enum(ReportReason), nullable=False)
    description = Column(Text)
    status = Column(Enum(ReportStatus), nullable=False, default=ReportStatus.PENDING)
    notes = Column(Text)
    reviewed_by = Column(Integer, ForeignKey("users.id"))
    reviewed_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    reporter = relationship("User", foreign_keys=[reporter_id])


class Review(Base):
    __tablename__ = "reviews"
    id = Column(Integer, primary_key=True, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="SET NULL"))
    rating = Column(Integer, nullable=False)
    title = Column(Text)
    content = Column(Text, nullable=False)
    status = Column(Enum(ReviewStatus), nullable=False, default=ReviewStatus.PENDING)
    response = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    reviewer = relationship("User", foreign_keys=[reviewer_id])
    seller = relationship("User", foreign_keys=[seller_id])


Index("idx_listings_price", Listing.price)
Index("idx_listings_year", Listing.year)
Index("idx_listings_status", Listing.status)

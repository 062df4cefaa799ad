"""
Database Schemas for the Antique Shop

Each Pydantic model below mirrors a document collection. Entity models carry
an `id` and are frozen: the catalog store replaces them, it never edits them
in place. `*Create` models validate incoming payloads before anything is
stored.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# -----------------
# Categories
# -----------------

CATEGORIES = [
    "Vintage Furniture",
    "Crystal & Glass",
    "Decorative Accents",
    "Lighting & Mirrors",
    "Tableware",
    "Wall Art",
    "Antique Books",
    "Garden & Outdoor",
    "Others",
]

ALL_CATEGORIES = "All"

MAX_PRODUCT_IMAGES = 3
MAX_SUBMISSION_IMAGES = 5
MAX_SUBMISSION_PRICE = 10_000_000


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DiscountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


def _known_category(value: str) -> str:
    if value not in CATEGORIES:
        raise ValueError(f"unknown category '{value}'")
    return value


# -----------------
# Products
# -----------------

class ProductCreate(BaseModel):
    title: str = Field(..., description="Product name")
    description: str = Field(..., description="Shop description")
    price: float = Field(..., ge=0, description="Price in INR")
    category: str = Field(..., description="One of CATEGORIES")
    images: List[str] = Field(default_factory=list, max_length=MAX_PRODUCT_IMAGES, description="Image payloads, first is the cover")
    subject: str = Field(..., description="Subject label, e.g. 'Brass', 'Victorian'")

    @field_validator("title", "description", "subject")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("category")
    @classmethod
    def known_category(cls, value: str) -> str:
        return _known_category(value)


class Product(ProductCreate):
    model_config = ConfigDict(frozen=True)

    id: str


# ---------------------
# Antique Submissions
# ---------------------

class SubmissionCreate(BaseModel):
    title: str = Field(..., description="Item name given by the seller")
    description: str
    price: float = Field(..., gt=0, le=MAX_SUBMISSION_PRICE, description="Asking price in INR")
    category: str
    images: List[str] = Field(default_factory=list, max_length=MAX_SUBMISSION_IMAGES)
    phone: str = Field(..., description="Seller contact phone")
    address: str = Field(..., description="Collection address")
    subject: str
    user_id: Optional[str] = Field(None, description="Submitting user, when registered")

    @field_validator("title", "description", "phone", "address", "subject")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("category")
    @classmethod
    def known_category(cls, value: str) -> str:
        return _known_category(value)


class AntiqueSubmission(SubmissionCreate):
    model_config = ConfigDict(frozen=True)

    id: str
    status: ReviewStatus = ReviewStatus.PENDING
    submitted_at: datetime = Field(default_factory=utcnow)


# ------------
# Offers
# ------------

class OfferCreate(BaseModel):
    product_id: str = Field(..., description="Referenced product id (weak reference)")
    amount: float = Field(..., gt=0, description="Offered amount in INR")
    message: Optional[str] = None
    name: str = Field(..., description="Bidder name")
    contact_number: str = Field(..., description="Bidder contact")
    user_id: Optional[str] = None

    @field_validator("name", "contact_number")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _not_blank(value)


class Offer(OfferCreate):
    model_config = ConfigDict(frozen=True)

    id: str
    status: ReviewStatus = ReviewStatus.PENDING
    submitted_at: datetime = Field(default_factory=utcnow)


# ----------------------
# Offers & Discounts
# ----------------------

class OfferDiscountCreate(BaseModel):
    title: str
    description: str
    status: DiscountStatus = DiscountStatus.ACTIVE

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _not_blank(value)


class OfferDiscount(OfferDiscountCreate):
    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime = Field(default_factory=utcnow)


# ----------------------
# Newsletter
# ----------------------

class SubscriberCreate(BaseModel):
    email: EmailStr = Field(..., description="Address to confirm and subscribe")


# ----------------------
# Seed catalog
# ----------------------

SEED_PRODUCTS = [
    {
        "id": "1",
        "title": "Antique Display Cabinet",
        "description": "Elegant glass-front display cabinet, perfect for showcasing your treasured collections.",
        "price": 85000,
        "category": "Vintage Furniture",
        "images": ["/photos/products/2023-02-05(1).jpg"],
        "subject": "Cabinet",
    },
    {
        "id": "2",
        "title": "Victorian Era Mirror",
        "description": "Beautifully preserved Victorian-era mirror with ornate golden frame.",
        "price": 45000,
        "category": "Lighting & Mirrors",
        "images": ["/photos/products/mirror-1.jpg"],
        "subject": "Mirror",
    },
    {
        "id": "3",
        "title": "Crystal Wine Glasses Set",
        "description": "Set of 6 vintage crystal wine glasses with intricate etching.",
        "price": 12500,
        "category": "Crystal & Glass",
        "images": ["/photos/products/glasses-1.jpg"],
        "subject": "Glassware",
    },
    {
        "id": "4",
        "title": "Brass Wall Sconces",
        "description": "Pair of antique brass wall sconces with patina finish.",
        "price": 18000,
        "category": "Lighting & Mirrors",
        "images": ["/photos/products/sconces-1.jpg"],
        "subject": "Brass",
    },
]

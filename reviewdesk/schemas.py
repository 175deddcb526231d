"""
Upstream Record Schemas

Pydantic models mirroring the records served by the review backend.
Each model is a transient copy of an upstream entity; nothing here is
persisted by the gateway. Upstream payloads carry legacy keys, so the
models accept extra fields and keep them.

Example: Merchant -> /admin/merchants, Post -> /admin/content/posts
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

MERCHANT_STATUSES = [
    "draft", "pending", "recommended", "trusted", "neutral",
    "controversial", "avoid", "approved", "suspended", "rejected",
]
POST_STATUSES = ["draft", "published", "scheduled", "trash"]
PROMOTION_TYPES = ["default", "common", "private"]
USER_STATUSES = ["active", "inactive", "suspended"]
REPORT_CONTENT_TYPES = ["review", "comment", "post"]
REACTIONS = ["❤️", "😢", "😡"]
REVIEW_STATUSES = ["published", "pending", "spam", "trash"]
COMMENT_STATUSES = ["published", "pending", "hidden"]


class Record(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


class Pagination(BaseModel):
    page: int = 1
    limit: int = 10
    total: int = 0
    pages: int = 0


# Merchants
class FaqItem(BaseModel):
    id: str
    question: str = ""
    answer: str = ""


class SeoSettings(BaseModel):
    title: str = ""
    description: str = ""
    canonical: str = ""
    schema_type: str = Field("", description="schema.org type, e.g. Organization")
    image: Optional[str] = Field(None, description="Existing image URL; new uploads travel as files")


class UtmParams(BaseModel):
    target_url: str = ""
    source: str = ""
    medium: str = ""
    campaign: str = ""
    term: str = ""
    content: str = ""


class AdminSettings(BaseModel):
    is_verified: bool = False
    is_featured: bool = False
    is_popular: bool = False
    show_in_homepage: bool = False
    display_order: int = 0
    hide_reviews: bool = False
    hide_write_review: bool = False


class Merchant(Record):
    id: str
    slug: str = ""
    name: str = ""
    category: str = ""
    description: str = ""
    status: str = Field("neutral", description="One of MERCHANT_STATUSES")
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    logo: Optional[str] = None
    screenshots: List[str] = Field(default_factory=list)
    rating: float = 0
    review_count: int = Field(0, alias="reviewCount")


# Content
class Category(Record):
    id: str
    slug: str = ""
    name: str = ""
    description: Optional[str] = None
    parent_id: Optional[str] = Field(None, alias="parentId")
    display_order: int = Field(0, alias="displayOrder")
    is_active: bool = Field(True, alias="isActive")
    children: List["Category"] = Field(default_factory=list)


class Post(Record):
    id: str
    slug: str = ""
    title: str = ""
    content: str = Field("", description="Rich text (HTML)")
    excerpt: str = ""
    status: str = Field("draft", description="One of POST_STATUSES")
    category_id: Optional[str] = Field(None, alias="categoryId")
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[str] = Field(None, alias="createdAt")


# Promotions
class Promotion(Record):
    id: str
    merchant_id: str = Field("", alias="merchantId")
    title: str = ""
    description: str = ""
    type: str = Field("common", description="One of PROMOTION_TYPES")
    start_date: Optional[str] = Field(None, alias="startDate")
    end_date: Optional[str] = Field(None, alias="endDate")
    giftcodes: Optional[str] = Field(None, description="Free text, comma-delimited by convention")
    login_required: bool = Field(False, alias="loginRequired")
    review_required: bool = Field(False, alias="reviewRequired")
    is_active: bool = Field(True, alias="isActive")


# Reviews
class ReviewComment(Record):
    id: str
    reaction: str = "❤️"
    content: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")


class Review(Record):
    id: str
    slug: Optional[str] = None
    merchant_id: str = Field("", alias="merchantId")
    title: str = ""
    rating: int = Field(5, ge=1, le=5)
    content: str = ""
    helpful: int = 0
    not_helpful: int = Field(0, alias="notHelpful")
    created_at: Optional[str] = Field(None, alias="createdAt")
    comments: List[ReviewComment] = Field(default_factory=list)
    status: str = Field("published", description="One of REVIEW_STATUSES")
    is_featured: bool = Field(False, alias="isFeatured")


class AdminComment(Record):
    id: str
    review_id: Optional[str] = Field(None, alias="reviewId")
    reaction: str = "❤️"
    content: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    status: str = Field("published", description="One of COMMENT_STATUSES")
    created_at: Optional[str] = Field(None, alias="createdAt")


# Users
class User(Record):
    id: str
    email: str = ""
    name: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    status: str = Field("active", description="One of USER_STATUSES")
    suspended_reason: Optional[str] = Field(None, alias="suspendedReason")
    suspended_until: Optional[str] = Field(None, alias="suspendedUntil")
    suspension_type: Optional[str] = Field(None, alias="suspensionType")


# Promotion claims by users
class Activity(Record):
    id: str
    user: str = ""
    ip_claimed: str = Field("", alias="ipClaimed")
    promotion_title: str = Field("", alias="promotionTitle")
    type: str = ""
    merchant: str = ""
    claim_time: Optional[str] = Field(None, alias="claimTime")
    code: Optional[str] = None


# Reports
class Report(Record):
    id: str
    reporter: Dict[str, Any] = Field(default_factory=dict)
    reason: Optional[str] = None
    created_at: Optional[str] = Field(None, alias="createdAt")


class ReportGroup(Record):
    content_id: str = Field(..., alias="contentId")
    content_type: str = Field("review", alias="contentType")
    content: Optional[Dict[str, Any]] = None
    reports: List[Report] = Field(default_factory=list)
    report_count: int = Field(0, alias="reportCount")
    last_report_date: Optional[str] = Field(None, alias="lastReportDate")

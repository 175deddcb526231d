from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from ..api_client import ApiResult, ContentApi
from ..lifecycle import post_lifecycle
from ..sanitize import RICH_TAGS, plain_text, sanitize_html
from ..schemas import SeoSettings
from ..slugs import SlugField, validate_slug_format
from ..widgets import parse_tags
from .base import FormController, pick

EXCERPT_LENGTH = 160


class PostValues(BaseModel):
    title: str = ""
    slug: str = ""
    slug_manually_edited: bool = False
    content: str = ""
    excerpt: str = ""
    category_id: str = ""
    tags: List[str] = Field(default_factory=list)
    featured_image: str = ""
    seo: SeoSettings = Field(default_factory=lambda: SeoSettings(schema_type="Article"))
    meta_keywords: str = ""
    scheduled_at: Optional[str] = None
    allow_comments: bool = True
    hide_ads: bool = False
    is_pinned: bool = False
    is_featured: bool = False
    status: Optional[str] = None
    change_log: str = ""


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class PostForm(FormController[PostValues]):
    values_model = PostValues
    entity_key = "post"
    list_path = "/admin/posts"
    slug_source = "title"

    def __init__(self, *args, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc), **kwargs):
        super().__init__(*args, **kwargs)
        self.clock = clock

    @property
    def failure_message(self) -> str:
        return "Failed to update post" if self.is_edit else "Failed to create post"

    async def fetch(self) -> ApiResult:
        return await ContentApi(self.client).get_post(self.entity_id)

    def from_record(self, p: Dict[str, Any]) -> PostValues:
        title = p.get("title") or ""
        slug = SlugField.hydrate(p.get("slug"), title)
        return PostValues(
            title=title,
            slug=slug.value,
            slug_manually_edited=slug.manually_edited,
            content=p.get("content") or "",
            excerpt=p.get("excerpt") or "",
            category_id=pick(p, "categoryId", "category.id"),
            tags=parse_tags(",".join(p.get("tags") or [])),
            featured_image=p.get("featuredImage") or "",
            seo=SeoSettings(
                title=pick(p, "metaTitle", "seoTitle", "seo.title"),
                description=pick(p, "metaDescription", "seoDescription", "seo.description"),
                canonical=pick(p, "canonicalUrl", "seo.canonical"),
                schema_type=pick(p, "schemaType", "seo.schemaType", default="Article"),
                image=pick(p, "ogImage", "seoImage", "seo.image", default=None),
            ),
            meta_keywords=p.get("metaKeywords") or "",
            scheduled_at=p.get("scheduledAt"),
            allow_comments=p.get("allowComments", True),
            hide_ads=bool(p.get("hideAds")),
            is_pinned=bool(p.get("isPinned")),
            is_featured=bool(p.get("isFeatured")),
            status=p.get("status") or "draft",
        )

    def set_content(self, html: str):
        self.set_field("content", sanitize_html(html, RICH_TAGS))

    def set_tags(self, text: str):
        self.set_field("tags", parse_tags(text))

    def validate(self) -> Dict[str, str]:
        v = self.values
        errors = {}
        if not v.title.strip():
            errors["title"] = "Title is required"
        valid, error = validate_slug_format(v.slug)
        if not valid:
            errors["slug"] = error
        if not plain_text(v.content).strip():
            errors["content"] = "Content is required"
        if not v.category_id:
            errors["category_id"] = "Category is required"
        return errors

    def target_status(self, action: str) -> str:
        current = self.values.status if self.is_edit else None
        if action == "publish":
            when = parse_datetime(self.values.scheduled_at)
            if when is not None and when > self.clock():
                action = "schedule"
        return post_lifecycle.next_status(current, action)

    def build_payload(self, action: str) -> Dict[str, Any]:
        v = self.values
        status = self.target_status(action)
        data = {
            "title": v.title.strip(),
            "slug": v.slug,
            "content": sanitize_html(v.content, RICH_TAGS),
            "excerpt": v.excerpt or plain_text(v.content)[:EXCERPT_LENGTH],
            "categoryId": v.category_id,
            "status": status,
            "scheduledAt": v.scheduled_at if status == "scheduled" else None,
            "allowComments": v.allow_comments,
            "hideAds": v.hide_ads,
            "tags": v.tags,
            "isPinned": v.is_pinned,
            "isFeatured": v.is_featured,
            "featuredImage": v.featured_image or None,
            "metaTitle": v.seo.title or None,
            "metaDescription": v.seo.description or None,
            "metaKeywords": v.meta_keywords or None,
            "canonicalUrl": v.seo.canonical or None,
            "ogImage": v.seo.image or None,
            "schemaType": v.seo.schema_type or None,
        }
        if self.is_edit and v.change_log:
            data["changeLog"] = v.change_log
        return {k: value for k, value in data.items() if value is not None}

    async def send(self, payload: Dict[str, Any]) -> ApiResult:
        api = ContentApi(self.client)
        if self.is_edit:
            return await api.update_post(self.entity_id, payload)
        return await api.create_post(payload)

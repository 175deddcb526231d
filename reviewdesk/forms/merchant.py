from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..api_client import ApiResult, FormPayload, MerchantsApi, UploadedFile
from ..lifecycle import merchant_lifecycle
from ..schemas import AdminSettings, FaqItem, SeoSettings, UtmParams
from ..slugs import SlugField, validate_slug_format
from ..widgets import ScreenshotSet
from .base import FormController, multipart, pick


class MerchantValues(BaseModel):
    name: str = ""
    slug: str = ""
    slug_manually_edited: bool = False
    description: str = ""
    category: str = ""
    website: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    status: str = "pending"
    logo: Optional[UploadedFile] = None
    logo_preview: Optional[str] = None
    seo: SeoSettings = Field(default_factory=SeoSettings)
    seo_image: Optional[UploadedFile] = None
    admin: AdminSettings = Field(default_factory=AdminSettings)
    utm: UtmParams = Field(default_factory=UtmParams)
    faqs: List[FaqItem] = Field(default_factory=list)
    default_promotion: Dict[str, Any] = Field(default_factory=dict)
    promote_promotion: Dict[str, Any] = Field(default_factory=dict)
    screenshots: ScreenshotSet = Field(default_factory=ScreenshotSet)
    existing_screenshots: List[str] = Field(default_factory=list)


def _faqs(raw: Any) -> List[FaqItem]:
    if not isinstance(raw, list):
        return []
    items = []
    for n, item in enumerate(raw, start=1):
        if isinstance(item, dict):
            items.append(FaqItem(id=str(item.get("id") or n), question=item.get("question") or "",
                                 answer=item.get("answer") or ""))
    return items


class MerchantForm(FormController[MerchantValues]):
    values_model = MerchantValues
    entity_key = "merchant"
    list_path = "/admin/merchants"
    slug_source = "name"

    @property
    def failure_message(self) -> str:
        return "Failed to update merchant" if self.is_edit else "Failed to create merchant"

    async def fetch(self) -> ApiResult:
        return await MerchantsApi(self.client).get(self.entity_id)

    def from_record(self, m: Dict[str, Any]) -> MerchantValues:
        name = m.get("name") or ""
        slug = SlugField.hydrate(m.get("slug"), name)
        seo = SeoSettings(
            title=pick(m, "seoTitle", "metaTitle", "seo.title"),
            description=pick(m, "seoDescription", "metaDescription", "seo.description"),
            canonical=pick(m, "canonicalUrl", "seo.canonical"),
            schema_type=pick(m, "schemaType", "seo.schemaType"),
            image=pick(m, "seoImage", "seo.image", "removeFromListUntil.seo.image", default=None),
        )
        admin = AdminSettings(
            is_verified=bool(m.get("isVerified")),
            is_featured=bool(m.get("isFeatured")),
            is_popular=bool(m.get("isPopular")),
            show_in_homepage=bool(m.get("showInHomepage")),
            display_order=int(m.get("displayOrder") or 0),
            hide_reviews=bool(m.get("hideReviews")),
            hide_write_review=bool(m.get("hideWriteReview")),
        )
        utm = UtmParams(
            target_url=pick(m, "utmTargetUrl", "utm.targetUrl"),
            source=pick(m, "utmSource", "utm.source"),
            medium=pick(m, "utmMedium", "utm.medium"),
            campaign=pick(m, "utmCampaign", "utm.campaign"),
            term=pick(m, "utmTerm", "utm.term"),
            content=pick(m, "utmContent", "utm.content"),
        )
        return MerchantValues(
            name=name,
            slug=slug.value,
            slug_manually_edited=slug.manually_edited,
            description=m.get("description") or "",
            category=m.get("category") or "",
            website=m.get("website") or "",
            email=m.get("email") or "",
            phone=m.get("phone") or "",
            address=m.get("address") or "",
            status=m.get("status") or "neutral",
            logo_preview=m.get("logo") or None,
            seo=seo,
            admin=admin,
            utm=utm,
            faqs=_faqs(pick(m, "faq", "faqs", default=[])),
            default_promotion=m.get("defaultPromotion") or {},
            promote_promotion=m.get("promotePromotion") or {},
            existing_screenshots=m.get("screenshots") or [],
        )

    def set_logo(self, file: Optional[UploadedFile]):
        self.set_field("logo", file)

    # ---------------------- Submitting ----------------------
    def validate(self) -> Dict[str, str]:
        v = self.values
        errors = {}
        if not v.name.strip():
            errors["name"] = "Merchant name is required"
        if not v.slug.strip():
            errors["slug"] = "Slug is required"
        else:
            valid, error = validate_slug_format(v.slug)
            if not valid:
                errors["slug"] = error or "Invalid slug format"
        if not v.description.strip():
            errors["description"] = "Description is required"
        if not v.category:
            errors["category"] = "Category is required"
        if not v.email.strip():
            errors["email"] = "Email is required"
        elif "@" not in v.email:
            errors["email"] = "Email is invalid"
        if v.logo is None and not v.logo_preview:
            errors["logo"] = "Logo image is required"
        if v.website and not v.website.startswith("http"):
            errors["website"] = "Website must start with http:// or https://"
        return errors

    def build_payload(self, action: str) -> FormPayload:
        v = self.values
        status = merchant_lifecycle.next_status(v.status if self.is_edit else None, action)
        data: Dict[str, Any] = {
            "name": v.name,
            "slug": v.slug,
            "description": v.description,
            "category": v.category,
            "website": v.website,
            "email": v.email,
            "phone": v.phone,
            "address": v.address,
            "status": status,
        }
        if not self.is_edit:
            data["isDraft"] = action == "save_draft"

        files = []
        if v.seo.title:
            data["seoTitle"] = v.seo.title
        if v.seo.description:
            data["seoDescription"] = v.seo.description
        if v.seo.canonical:
            data["canonicalUrl"] = v.seo.canonical
        if v.seo.schema_type:
            data["schemaType"] = v.seo.schema_type
        if v.seo_image is not None:
            files.append(("seoImage", v.seo_image))
        elif v.seo.image:
            # keeps the stored image on the server
            data["existingSeoImage"] = v.seo.image

        data.update({
            "isVerified": v.admin.is_verified,
            "isFeatured": v.admin.is_featured,
            "isPopular": v.admin.is_popular,
            "showInHomepage": v.admin.show_in_homepage,
            "displayOrder": v.admin.display_order,
            "hideReviews": v.admin.hide_reviews,
            "hideWriteReview": v.admin.hide_write_review,
        })

        utm = {
            "targetUrl": v.utm.target_url,
            "source": v.utm.source,
            "medium": v.utm.medium,
            "campaign": v.utm.campaign,
            "term": v.utm.term,
            "content": v.utm.content,
        }
        if any(utm.values()):
            data["utm"] = {k: value for k, value in utm.items() if value}

        if v.faqs:
            data["faqs"] = [f.model_dump() for f in v.faqs]
        if v.default_promotion:
            data["defaultPromotion"] = v.default_promotion
        if v.promote_promotion:
            data["promotePromotion"] = v.promote_promotion

        for index, shot in enumerate(v.screenshots.desktop):
            files.append((f"screenshots_{index}", shot))
        for index, shot in enumerate(v.screenshots.mobile):
            files.append((f"mobileScreenshots_{index}", shot))
        if v.logo is not None:
            files.append(("logo", v.logo))

        return multipart(data, files, bracketed=["utm"])

    async def send(self, payload: FormPayload) -> ApiResult:
        api = MerchantsApi(self.client)
        if self.is_edit:
            return await api.update(self.entity_id, payload)
        return await api.create(payload)

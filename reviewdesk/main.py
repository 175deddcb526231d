import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .api_client import ApiClient, ContentApi, MerchantsApi, ReportsApi, UploadedFile, UpstreamError, login
from .auth import CurrentUser, Token, get_current_admin, get_current_user
from .config import settings
from .forms import (
    CategoryForm, CommentEditForm, MerchantForm, PostForm, PromotionBatchForm, PromotionEditForm, ReviewEditForm,
    SecuritySettingsForm, SubmitResult, SuspensionForm, UserForm,
)
from .forms.promotion import PromotionDraft, search_merchants
from .lifecycle import LIFECYCLES, InvalidTransition
from .list_state import Action, ListState
from .list_view import ListViewController
from .query_cache import QueryCache
from .resources import RESOURCES, get_resource
from .reviews import (
    MY_REVIEWS_GC, MyReviewsController, ReactionState, add_comment, emoticon_counts, review_detail,
)
from .schemas import AdminSettings, FaqItem, SeoSettings, UtmParams
from .widgets import Screenshots, parse_tags

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.http = httpx.AsyncClient(base_url=settings.api_base_url, timeout=settings.request_timeout)
    app.state.cache = QueryCache(gc_time=MY_REVIEWS_GC)
    logger.info("Gateway started against %s", settings.api_base_url)
    yield
    await app.state.cache.drain()
    await app.state.http.aclose()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    status = exc.status_code if exc.status_code in (401, 403, 404) else 502
    return JSONResponse(status_code=status, content={"detail": exc.message})


# ---------------------- Dependencies ----------------------
def get_http(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def get_cache(request: Request) -> QueryCache:
    return request.app.state.cache


def get_public_client(http: httpx.AsyncClient = Depends(get_http)) -> ApiClient:
    return ApiClient(http)


def get_admin_client(admin: CurrentUser = Depends(get_current_admin),
                     http: httpx.AsyncClient = Depends(get_http)) -> ApiClient:
    return ApiClient(http, admin.token)


def get_user_client(user: CurrentUser = Depends(get_current_user),
                    http: httpx.AsyncClient = Depends(get_http)) -> ApiClient:
    return ApiClient(http, user.token)


def form_response(result: SubmitResult) -> Dict[str, Any]:
    if result.ok:
        return {"ok": True, "redirect": result.redirect, "data": result.data}
    if not result.sent:
        raise HTTPException(status_code=422, detail={"errors": result.errors})
    status = result.status_code if result.status_code and 400 <= result.status_code < 500 else 502
    raise HTTPException(status_code=status, detail={"errors": result.errors, "data": result.data})


def resource_or_404(name: str):
    resource = get_resource(name)
    if resource is None:
        raise HTTPException(status_code=404, detail=f"Unknown resource: {name}")
    return resource


async def load_form(form) -> None:
    result = await form.load()
    if not result.ok:
        raise UpstreamError(result.error, result.status_code)


# ---------------------- Health & Schema ----------------------
@app.get("/")
def read_root():
    return {"message": f"{settings.app_name} running"}


@app.get("/test")
async def test_upstream(http: httpx.AsyncClient = Depends(get_http)):
    """Check that the upstream review API is reachable"""
    response = {
        "backend": "✅ Running",
        "upstream": "❌ Not Available",
        "upstream_url": settings.api_base_url,
        "status_code": None,
    }
    try:
        upstream = await http.get("/health")
        response["status_code"] = upstream.status_code
        response["upstream"] = "✅ Reachable" if upstream.is_success else f"⚠️  Responded {upstream.status_code}"
    except httpx.HTTPError as e:
        response["upstream"] = f"❌ Error: {str(e)[:50]}"
    return response


@app.get("/schema")
def schema_definitions():
    return {
        "resources": sorted(RESOURCES),
        "actions": {name: r.actions for name, r in RESOURCES.items()},
        "statuses": {name: lc.statuses for name, lc in LIFECYCLES.items()},
    }


# ---------------------- Auth ----------------------
class LoginIn(BaseModel):
    email: str
    password: str


@app.post("/auth/login", response_model=Token)
async def auth_login(payload: LoginIn, client: ApiClient = Depends(get_public_client)):
    result = await login(client, payload.email, payload.password)
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)
    body = result.data or {}
    token = body.get("token") or body.get("accessToken") or body.get("access_token")
    if not token:
        raise HTTPException(status_code=502, detail="Upstream login returned no token")
    return Token(access_token=token, user=body.get("user"))


# ---------------------- List views ----------------------
class DispatchIn(BaseModel):
    state: ListState = ListState()
    action: Action


class BulkIn(BaseModel):
    action: str
    ids: List[str]


@app.get("/admin/{resource}")
async def list_resource(
    resource: str,
    page: int = 1,
    limit: Optional[int] = None,
    status: Optional[str] = None,
    search: str = "",
    categoryId: Optional[str] = None,
    type: Optional[str] = None,
    dateFrom: Optional[str] = None,
    dateTo: Optional[str] = None,
    merchant: Optional[str] = None,
    rating: Optional[int] = Query(None, ge=1, le=5),
    reaction: Optional[str] = None,
    q: str = "",
    order: Optional[str] = None,
    client: ApiClient = Depends(get_admin_client),
):
    config = resource_or_404(resource)
    state = ListState(page=max(1, page), limit=min(100, max(1, limit or settings.per_page)), status=status,
                      search=search, category_id=categoryId, type=type, date_from=dateFrom, date_to=dateTo,
                      merchant=merchant, rating=rating, reaction=reaction)
    controller = ListViewController(config, client, state)
    result = await controller.load()
    if not result.ok:
        raise UpstreamError(result.error, result.status_code)
    return controller.view(q, order)


@app.post("/admin/{resource}/dispatch")
async def dispatch_resource(resource: str, payload: DispatchIn, client: ApiClient = Depends(get_admin_client)):
    controller = ListViewController(resource_or_404(resource), client, payload.state)
    try:
        fetched = await controller.dispatch(payload.action)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if fetched and controller.error:
        raise UpstreamError(controller.error)
    response = {"state": controller.state.model_dump(mode="json"), "fetched": fetched}
    if fetched:
        response.update(controller.view())
    return response


@app.post("/admin/{resource}/bulk")
async def bulk_resource(resource: str, payload: BulkIn, client: ApiClient = Depends(get_admin_client)):
    controller = ListViewController(resource_or_404(resource), client)
    outcome = await controller.bulk(payload.action, payload.ids)
    return outcome.model_dump()


@app.delete("/admin/{resource}/{item_id}")
async def delete_resource(resource: str, item_id: str, client: ApiClient = Depends(get_admin_client)):
    controller = ListViewController(resource_or_404(resource), client)
    result = await controller.delete(item_id)
    if not result.ok:
        raise UpstreamError(result.error, result.status_code)
    return {"ok": True}


# ---------------------- Merchants ----------------------
def _bool(value: Optional[str]) -> bool:
    return str(value).lower() in ("true", "1", "on", "yes")


def _json(value: Optional[str], default):
    if not value:
        return default
    try:
        return json.loads(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed JSON field")


def _int(value: Optional[str], default: int) -> int:
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed number field")


async def _uploaded(upload: UploadFile) -> UploadedFile:
    return UploadedFile(filename=upload.filename or "upload", content=await upload.read(),
                        content_type=upload.content_type or "application/octet-stream")


async def apply_merchant_form(form: MerchantForm, request: Request) -> Dict[str, Any]:
    data = await request.form()
    fields = {k: v for k, v in data.items() if isinstance(v, str)}
    uploads = {k: v for k, v in data.items() if not isinstance(v, str)}

    if "name" in fields:
        form.set_field("name", fields["name"])
    if fields.get("slug"):
        form.set_field("slug", fields["slug"])
    for name in ("description", "category", "website", "email", "phone", "address"):
        if name in fields:
            form.set_field(name, fields[name])
    if "existingLogo" in fields:
        form.set_field("logo_preview", fields["existingLogo"] or None)

    v = form.values
    form.set_field("seo", SeoSettings(
        title=fields.get("seoTitle", v.seo.title),
        description=fields.get("seoDescription", v.seo.description),
        canonical=fields.get("canonicalUrl", v.seo.canonical),
        schema_type=fields.get("schemaType", v.seo.schema_type),
        image=fields.get("existingSeoImage", v.seo.image),
    ))
    form.set_field("admin", AdminSettings(
        is_verified=_bool(fields.get("isVerified", v.admin.is_verified)),
        is_featured=_bool(fields.get("isFeatured", v.admin.is_featured)),
        is_popular=_bool(fields.get("isPopular", v.admin.is_popular)),
        show_in_homepage=_bool(fields.get("showInHomepage", v.admin.show_in_homepage)),
        display_order=_int(fields.get("displayOrder"), v.admin.display_order),
        hide_reviews=_bool(fields.get("hideReviews", v.admin.hide_reviews)),
        hide_write_review=_bool(fields.get("hideWriteReview", v.admin.hide_write_review)),
    ))
    form.set_field("utm", UtmParams(
        target_url=fields.get("utm[targetUrl]", v.utm.target_url),
        source=fields.get("utm[source]", v.utm.source),
        medium=fields.get("utm[medium]", v.utm.medium),
        campaign=fields.get("utm[campaign]", v.utm.campaign),
        term=fields.get("utm[term]", v.utm.term),
        content=fields.get("utm[content]", v.utm.content),
    ))
    if "faqs" in fields:
        form.set_field("faqs", [FaqItem(**f) for f in _json(fields["faqs"], [])])
    if "defaultPromotion" in fields:
        form.set_field("default_promotion", _json(fields["defaultPromotion"], {}))
    if "promotePromotion" in fields:
        form.set_field("promote_promotion", _json(fields["promotePromotion"], {}))

    if "logo" in uploads:
        form.set_logo(await _uploaded(uploads["logo"]))
    if "seoImage" in uploads:
        form.set_field("seo_image", await _uploaded(uploads["seoImage"]))

    shots = Screenshots()
    desktop = [await _uploaded(f) for k, f in sorted(uploads.items()) if k.startswith("screenshots_")]
    mobile = [await _uploaded(f) for k, f in sorted(uploads.items()) if k.startswith("mobileScreenshots_")]
    if desktop:
        shots.add_desktop(desktop)
    if mobile:
        shots.add_mobile(mobile)
    form.set_field("screenshots", shots.value())

    rejected = [{"filename": p.file.filename, "error": p.error} for p in shots.desktop + shots.mobile if p.error]
    if shots.error:
        rejected.append({"filename": None, "error": shots.error})
    return {"action": fields.get("action", "publish"), "rejected": rejected}


@app.get("/admin/merchants/{merchant_id}/form")
async def merchant_form(merchant_id: str, client: ApiClient = Depends(get_admin_client)):
    form = MerchantForm(client, merchant_id)
    await load_form(form)
    return form.values.model_dump(mode="json", exclude={"logo", "seo_image", "screenshots"})


@app.post("/admin/merchants")
async def create_merchant(request: Request, client: ApiClient = Depends(get_admin_client)):
    form = MerchantForm(client)
    applied = await apply_merchant_form(form, request)
    response = form_response(await form.submit(applied["action"]))
    response["rejectedScreenshots"] = applied["rejected"]
    return response


@app.put("/admin/merchants/{merchant_id}")
async def update_merchant(merchant_id: str, request: Request, client: ApiClient = Depends(get_admin_client)):
    form = MerchantForm(client, merchant_id)
    await load_form(form)
    applied = await apply_merchant_form(form, request)
    response = form_response(await form.submit(applied["action"]))
    response["rejectedScreenshots"] = applied["rejected"]
    return response


# ---------------------- Posts ----------------------
class PostIn(BaseModel):
    title: str = ""
    slug: Optional[str] = None
    content: str = ""
    excerpt: str = ""
    categoryId: str = ""
    tags: Any = None
    featuredImage: str = ""
    metaTitle: str = ""
    metaDescription: str = ""
    metaKeywords: str = ""
    canonicalUrl: str = ""
    ogImage: Optional[str] = None
    schemaType: str = "Article"
    scheduledAt: Optional[str] = None
    allowComments: bool = True
    hideAds: bool = False
    isPinned: bool = False
    isFeatured: bool = False
    changeLog: str = ""
    action: str = "publish"


def apply_post(form: PostForm, payload: PostIn):
    form.set_field("title", payload.title)
    if payload.slug:
        form.set_field("slug", payload.slug)
    form.set_content(payload.content)
    tags = payload.tags if isinstance(payload.tags, str) else ",".join(payload.tags or [])
    form.update(
        excerpt=payload.excerpt,
        category_id=payload.categoryId,
        tags=parse_tags(tags),
        featured_image=payload.featuredImage,
        seo=SeoSettings(title=payload.metaTitle, description=payload.metaDescription,
                        canonical=payload.canonicalUrl, schema_type=payload.schemaType, image=payload.ogImage),
        meta_keywords=payload.metaKeywords,
        scheduled_at=payload.scheduledAt,
        allow_comments=payload.allowComments,
        hide_ads=payload.hideAds,
        is_pinned=payload.isPinned,
        is_featured=payload.isFeatured,
        change_log=payload.changeLog,
    )


@app.get("/admin/posts/{post_id}/form")
async def post_form(post_id: str, client: ApiClient = Depends(get_admin_client)):
    form = PostForm(client, post_id)
    await load_form(form)
    return form.values.model_dump(mode="json")


@app.post("/admin/posts")
async def create_post(payload: PostIn, client: ApiClient = Depends(get_admin_client)):
    form = PostForm(client)
    apply_post(form, payload)
    return form_response(await form.submit(payload.action))


@app.put("/admin/posts/{post_id}")
async def update_post(post_id: str, payload: PostIn, client: ApiClient = Depends(get_admin_client)):
    form = PostForm(client, post_id)
    await load_form(form)
    apply_post(form, payload)
    return form_response(await form.submit(payload.action))


# ---------------------- Categories ----------------------
class CategoryIn(BaseModel):
    name: str = ""
    slug: Optional[str] = None
    description: str = ""
    parentId: Optional[str] = None
    displayOrder: int = 0
    allowComments: bool = True
    hideAds: bool = False
    isActive: bool = True
    metaTitle: str = ""
    metaDescription: str = ""
    action: str = "publish"


def apply_category(form: CategoryForm, payload: CategoryIn):
    form.set_field("name", payload.name)
    if payload.slug:
        form.set_field("slug", payload.slug)
    form.update(
        description=payload.description,
        parent_id=payload.parentId or None,
        display_order=payload.displayOrder,
        allow_comments=payload.allowComments,
        hide_ads=payload.hideAds,
        is_active=payload.isActive,
        meta_title=payload.metaTitle,
        meta_description=payload.metaDescription,
    )


@app.get("/admin/categories/options")
async def category_options(exclude: Optional[str] = None, client: ApiClient = Depends(get_admin_client)):
    form = CategoryForm(client, exclude)
    result = await form.load_tree()
    if not result.ok:
        raise UpstreamError(result.error, result.status_code)
    return [{"id": o.id, "name": o.name, "level": o.level, "label": o.label} for o in form.options()]


@app.post("/admin/categories")
async def create_category(payload: CategoryIn, client: ApiClient = Depends(get_admin_client)):
    form = CategoryForm(client)
    apply_category(form, payload)
    return form_response(await form.submit(payload.action))


@app.put("/admin/categories/{category_id}")
async def update_category(category_id: str, payload: CategoryIn, client: ApiClient = Depends(get_admin_client)):
    form = CategoryForm(client, category_id)
    await load_form(form)
    apply_category(form, payload)
    return form_response(await form.submit(payload.action))


# ---------------------- Promotions ----------------------
class PromotionIn(BaseModel):
    title: str = ""
    description: str = ""
    type: str = "common"
    startDate: str = ""
    endDate: str = ""
    giftcodes: str = ""
    loginRequired: bool = False
    reviewRequired: bool = False

    def draft(self) -> PromotionDraft:
        return PromotionDraft(
            title=self.title, description=self.description, type=self.type, start_date=self.startDate,
            end_date=self.endDate, giftcodes=self.giftcodes, login_required=self.loginRequired,
            review_required=self.reviewRequired,
        )


class PromotionBatchIn(BaseModel):
    merchantId: str = ""
    promotions: List[PromotionIn] = []


class PromotionPatchIn(PromotionIn):
    merchantId: str = ""
    isActive: bool = True


@app.get("/admin/promotions/merchant-options")
async def promotion_merchant_options(search: str = "", client: ApiClient = Depends(get_admin_client)):
    options = await search_merchants(MerchantsApi(client), search)
    return [o.model_dump() for o in options]


@app.post("/admin/promotions/batch")
async def create_promotions(payload: PromotionBatchIn, client: ApiClient = Depends(get_admin_client)):
    form = PromotionBatchForm(client)
    form.values = form.values.model_copy(update={
        "merchant_id": payload.merchantId,
        "promotions": [p.draft() for p in payload.promotions],
    })
    result = await form.submit()
    if result.sent and not result.ok:
        # per-promotion outcomes; some may have been created
        status = 207 if result.data["created"] else 400
        return JSONResponse(status_code=status, content={"ok": False, "errors": result.errors, "data": result.data})
    return form_response(result)


@app.patch("/admin/promotions/{promotion_id}")
async def update_promotion(promotion_id: str, payload: PromotionPatchIn,
                           client: ApiClient = Depends(get_admin_client)):
    form = PromotionEditForm(client, promotion_id)
    await load_form(form)
    draft = payload.draft().model_copy(update={"id": promotion_id})
    form.update(merchant_id=payload.merchantId or form.values.merchant_id, promotion=draft,
                is_active=payload.isActive)
    return form_response(await form.submit())


# ---------------------- Users ----------------------
class UserIn(BaseModel):
    email: str = ""
    displayName: str = ""
    phoneNumber: str = ""
    password: str = ""
    requirePasswordReset: bool = False
    role: str = "user"


class SuspensionIn(BaseModel):
    suspensionType: str = "account"
    reason: str = ""
    duration: int = 30
    suspendedUntil: str = ""
    permanent: bool = False


@app.post("/admin/users")
async def create_user(payload: UserIn, client: ApiClient = Depends(get_admin_client)):
    form = UserForm(client)
    form.update(email=payload.email, display_name=payload.displayName, phone_number=payload.phoneNumber,
                password=payload.password, require_password_reset=payload.requirePasswordReset, role=payload.role)
    return form_response(await form.submit())


@app.get("/admin/users/{user_id}/suspension")
async def get_suspension(user_id: str, client: ApiClient = Depends(get_admin_client)):
    form = SuspensionForm(client, user_id)
    await load_form(form)
    preview = form.preview_until()
    return {
        **form.values.model_dump(),
        "willSuspendUntil": preview.isoformat() if preview else None,
        "user": form.record,
    }


@app.put("/admin/users/{user_id}/suspension")
async def update_suspension(user_id: str, payload: SuspensionIn, client: ApiClient = Depends(get_admin_client)):
    form = SuspensionForm(client, user_id)
    await load_form(form)
    form.update(suspension_type=payload.suspensionType, reason=payload.reason, duration=payload.duration,
                suspended_until=payload.suspendedUntil, permanent=payload.permanent)
    return form_response(await form.submit())


@app.post("/admin/users/{user_id}/unsuspend")
async def unsuspend_user(user_id: str, client: ApiClient = Depends(get_admin_client)):
    form = SuspensionForm(client, user_id)
    await load_form(form)
    return form_response(await form.unsuspend())


# ---------------------- Reports ----------------------
@app.post("/admin/reports/{content_id}/{decision}")
async def decide_report(content_id: str, decision: str, contentType: str = "review",
                        client: ApiClient = Depends(get_admin_client)):
    api = ReportsApi(client)
    if decision == "accept":
        result = await api.accept(content_id, contentType)
    elif decision == "reject":
        result = await api.reject(content_id, contentType)
    else:
        raise HTTPException(status_code=404, detail="Not found")
    if not result.ok:
        raise UpstreamError(result.error, result.status_code)
    return {"ok": True, "data": result.data}


@app.get("/admin/dashboard/stats")
async def dashboard_stats(client: ApiClient = Depends(get_admin_client)):
    content, reports = await asyncio.gather(ContentApi(client).statistics(), ReportsApi(client).stats())
    for result in (content, reports):
        if not result.ok:
            raise UpstreamError(result.error, result.status_code)
    return {"content": content.data, "reports": reports.data}


# ---------------------- Moderation ----------------------
class ReviewEditIn(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    action: str = "save"


class CommentEditIn(BaseModel):
    content: Optional[str] = None
    displayName: Optional[str] = None
    reaction: Optional[str] = None
    action: str = "save"


@app.get("/admin/reviews/{review_id}/form")
async def review_edit_form(review_id: str, client: ApiClient = Depends(get_admin_client)):
    form = ReviewEditForm(client, review_id)
    await load_form(form)
    return form.values.model_dump()


@app.patch("/admin/reviews/{review_id}")
async def moderate_review(review_id: str, payload: ReviewEditIn, client: ApiClient = Depends(get_admin_client)):
    form = ReviewEditForm(client, review_id)
    await load_form(form)
    changes = {"title": payload.title, "content": payload.content}
    form.update(**{k: v for k, v in changes.items() if v is not None})
    return form_response(await form.submit(payload.action))


@app.get("/admin/comments/{comment_id}/form")
async def comment_edit_form(comment_id: str, client: ApiClient = Depends(get_admin_client)):
    form = CommentEditForm(client, comment_id)
    await load_form(form)
    return form.values.model_dump()


@app.patch("/admin/comments/{comment_id}")
async def moderate_comment(comment_id: str, payload: CommentEditIn, client: ApiClient = Depends(get_admin_client)):
    form = CommentEditForm(client, comment_id)
    await load_form(form)
    changes = {"content": payload.content, "display_name": payload.displayName, "reaction": payload.reaction}
    form.update(**{k: v for k, v in changes.items() if v is not None})
    return form_response(await form.submit(payload.action))


# ---------------------- Security settings ----------------------
class SecuritySettingsIn(BaseModel):
    enableRecaptchaV2: Optional[bool] = None
    recaptchaV2SiteKey: Optional[str] = None
    recaptchaV2SecretKey: Optional[str] = None
    enableRecaptchaV3: Optional[bool] = None
    recaptchaV3SiteKey: Optional[str] = None
    recaptchaV3SecretKey: Optional[str] = None
    recaptchaV3ScoreThreshold: Optional[float] = None
    enableAutoSpamDetection: Optional[bool] = None
    autoSpamThreshold: Optional[int] = None


SECURITY_FIELDS = {
    "enableRecaptchaV2": "enable_recaptcha_v2",
    "recaptchaV2SiteKey": "recaptcha_v2_site_key",
    "recaptchaV2SecretKey": "recaptcha_v2_secret_key",
    "enableRecaptchaV3": "enable_recaptcha_v3",
    "recaptchaV3SiteKey": "recaptcha_v3_site_key",
    "recaptchaV3SecretKey": "recaptcha_v3_secret_key",
    "recaptchaV3ScoreThreshold": "recaptcha_v3_score_threshold",
    "enableAutoSpamDetection": "enable_auto_spam_detection",
    "autoSpamThreshold": "auto_spam_threshold",
}


@app.get("/admin/settings/security")
async def security_settings(client: ApiClient = Depends(get_admin_client)):
    form = SecuritySettingsForm(client)
    await load_form(form)
    return form.masked()


@app.put("/admin/settings/security")
async def save_security_settings(payload: SecuritySettingsIn, client: ApiClient = Depends(get_admin_client)):
    form = SecuritySettingsForm(client)
    await load_form(form)
    for key, value in payload.model_dump(exclude_none=True).items():
        form.set_field(SECURITY_FIELDS[key], value)
    response = form_response(await form.submit("save"))
    response["data"] = form.masked()
    return response


# ---------------------- Reviews ----------------------
class ReactionIn(BaseModel):
    state: ReactionState = ReactionState()
    action: str


@app.get("/reviews/{slug}")
async def get_review(slug: str, client: ApiClient = Depends(get_public_client)):
    return await review_detail(client, slug)


class CommentIn(BaseModel):
    reaction: Optional[str] = None
    content: str = ""
    displayName: Optional[str] = None


@app.post("/reviews/{slug}/comments")
async def comment_on_review(slug: str, payload: CommentIn, client: ApiClient = Depends(get_public_client)):
    detail = await review_detail(client, slug)
    review = detail["review"]
    result = await add_comment(client, review, payload.reaction, payload.content, payload.displayName)
    if not result.ok:
        raise UpstreamError(result.error, result.status_code)
    return {"comments": review["comments"], "emoticons": emoticon_counts(review)}


@app.post("/reviews/reactions")
def toggle_reaction(payload: ReactionIn):
    if payload.action == "bookmark":
        return payload.state.toggle_bookmark().model_dump(mode="json")
    try:
        return payload.state.toggle(payload.action).model_dump(mode="json")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/account/reviews")
async def my_reviews(page: int = 1, filter: str = "all", user: CurrentUser = Depends(get_current_user),
                     client: ApiClient = Depends(get_user_client), cache: QueryCache = Depends(get_cache)):
    return await MyReviewsController(client, cache, user.id).view(max(1, page), filter)


@app.delete("/account/reviews/{review_id}")
async def delete_my_review(review_id: str, page: int = 1, user: CurrentUser = Depends(get_current_user),
                           client: ApiClient = Depends(get_user_client), cache: QueryCache = Depends(get_cache)):
    controller = MyReviewsController(client, cache, user.id)
    result = await controller.delete(review_id, max(1, page))
    if not result.ok:
        raise UpstreamError(result.error, result.status_code)
    return {"ok": True, "reviews": controller.cached_ids(max(1, page))}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)

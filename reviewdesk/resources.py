"""
Per-entity list resources: where each admin list page fetches from, how
rows are identified and labelled, and how row/bulk actions reach the
upstream API.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, ValidationError

from .api_client import (
    AdminCommentsApi, AdminReviewsApi, ApiClient, ApiResult, ContentApi, MerchantsApi, PromotionsApi, ReportsApi,
    UpstreamError, UsersApi,
)
from .lifecycle import (
    EntityLifecycle, category_lifecycle, comment_lifecycle, merchant_lifecycle, post_lifecycle, promotion_lifecycle,
    review_lifecycle, user_lifecycle,
)
from .schemas import Activity, AdminComment, Category, Merchant, Post, Promotion, ReportGroup, Review, User

ListCall = Callable[[ApiClient, Dict[str, Any]], Awaitable[ApiResult]]
ItemCall = Callable[[ApiClient, str, Dict[str, Any]], Awaitable[ApiResult]]
BatchCall = Callable[[ApiClient, str, List[str]], Awaitable[ApiResult]]


class ListResource(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    items_key: str
    model: Type[BaseModel]
    list_call: ListCall
    id_field: str = "id"
    search_param: str = "search"
    # fields matched by the in-memory search over a fetched page
    search_fields: List[str] = []
    lifecycle: Optional[EntityLifecycle] = None
    status_of: Callable[[Dict[str, Any]], Optional[str]] = lambda row: row.get("status")
    delete_call: Optional[ItemCall] = None
    batch_call: Optional[BatchCall] = None
    batch_actions: List[str] = []
    item_actions: Dict[str, ItemCall] = {}
    # dashboard names for upstream values
    status_aliases: Dict[str, str] = {}
    action_aliases: Dict[str, str] = {}

    @property
    def actions(self) -> List[str]:
        return list(self.batch_actions) + [a for a in self.item_actions if a not in self.batch_actions]

    def parse(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a raw upstream row, keeping unknown keys."""
        try:
            return self.model.model_validate(item).model_dump(by_alias=True)
        except ValidationError:
            raise UpstreamError(f"Malformed {self.name} response")

    def row_id(self, row: Dict[str, Any]) -> str:
        return str(row.get(self.id_field, ""))

    def row_view(self, row: Dict[str, Any]) -> Dict[str, Any]:
        status = self.status_of(row)
        view = dict(row)
        if self.lifecycle is not None:
            view["statusLabel"] = self.lifecycle.label(status)
            view["link"] = self.lifecycle.route_for(status, self.row_id(row))
        return view


def _active_status(row: Dict[str, Any]) -> str:
    return "active" if row.get("isActive", True) else "inactive"


# ---------------------- Merchants ----------------------
merchants = ListResource(
    name="merchants",
    items_key="merchants",
    model=Merchant,
    list_call=lambda c, p: MerchantsApi(c).list(p),
    search_param="query",
    search_fields=["name", "slug", "category"],
    lifecycle=merchant_lifecycle,
    delete_call=lambda c, i, row: MerchantsApi(c).delete(i),
    batch_call=lambda c, action, ids: MerchantsApi(c).bulk(action, ids),
    batch_actions=["publish", "deactivate"],
)


# ---------------------- Posts ----------------------
posts = ListResource(
    name="posts",
    items_key="posts",
    model=Post,
    list_call=lambda c, p: ContentApi(c).list_posts(p),
    search_fields=["title", "excerpt"],
    lifecycle=post_lifecycle,
    delete_call=lambda c, i, row: ContentApi(c).delete_post(i, permanent=row.get("status") == "trash"),
    batch_call=lambda c, action, ids: ContentApi(c).bulk_posts(action, ids),
    batch_actions=["publish", "draft", "trash", "delete"],
    item_actions={
        "restore": lambda c, i, row: ContentApi(c).restore_post(i),
        "duplicate": lambda c, i, row: ContentApi(c).duplicate_post(i),
    },
)


# ---------------------- Categories ----------------------
async def _list_categories(client: ApiClient, params: Dict[str, Any]) -> ApiResult:
    # categories come back as a tree without pagination
    return await ContentApi(client).list_categories(include_inactive=True)


categories = ListResource(
    name="categories",
    items_key="categories",
    model=Category,
    list_call=_list_categories,
    search_fields=["name", "slug", "description"],
    lifecycle=category_lifecycle,
    status_of=_active_status,
    delete_call=lambda c, i, row: ContentApi(c).delete_category(i),
    item_actions={
        "activate": lambda c, i, row: ContentApi(c).update_category(i, {"isActive": True}),
        "deactivate": lambda c, i, row: ContentApi(c).update_category(i, {"isActive": False}),
        "delete": lambda c, i, row: ContentApi(c).delete_category(i),
    },
)


# ---------------------- Promotions ----------------------
promotions = ListResource(
    name="promotions",
    items_key="promotions",
    model=Promotion,
    list_call=lambda c, p: PromotionsApi(c).list(p),
    search_fields=["title", "description"],
    lifecycle=promotion_lifecycle,
    status_of=_active_status,
    delete_call=lambda c, i, row: PromotionsApi(c).delete(i),
    item_actions={
        "activate": lambda c, i, row: PromotionsApi(c).update(i, {"isActive": True}),
        "deactivate": lambda c, i, row: PromotionsApi(c).update(i, {"isActive": False}),
        "delete": lambda c, i, row: PromotionsApi(c).delete(i),
    },
)


# ---------------------- Users ----------------------
users = ListResource(
    name="users",
    items_key="users",
    model=User,
    list_call=lambda c, p: UsersApi(c).list(p),
    search_fields=["email", "name", "displayName"],
    lifecycle=user_lifecycle,
    delete_call=lambda c, i, row: UsersApi(c).delete(i),
    batch_call=lambda c, action, ids: UsersApi(c).bulk(action, ids),
    batch_actions=["suspend", "activate", "delete"],
)


# ---------------------- Reports ----------------------
def _report_type(row: Dict[str, Any]) -> str:
    return row.get("contentType") or "review"


reports = ListResource(
    name="reports",
    items_key="reports",
    model=ReportGroup,
    list_call=lambda c, p: ReportsApi(c).list(p),
    id_field="contentId",
    search_fields=["content.title", "content.content", "reports.reporter.name", "reports.reason"],
    status_of=lambda row: None,
    item_actions={
        "accept": lambda c, i, row: ReportsApi(c).accept(i, _report_type(row)),
        "reject": lambda c, i, row: ReportsApi(c).reject(i, _report_type(row)),
    },
)


# ---------------------- Moderation ----------------------
reviews = ListResource(
    name="reviews",
    items_key="reviews",
    model=Review,
    list_call=lambda c, p: AdminReviewsApi(c).list(p),
    search_param="query",
    search_fields=["title", "content", "merchant.name", "user.name"],
    lifecycle=review_lifecycle,
    delete_call=lambda c, i, row: AdminReviewsApi(c).delete(i),
    batch_call=lambda c, action, ids: AdminReviewsApi(c).bulk(action, ids),
    batch_actions=["publish", "spam", "trash"],
    item_actions={"feature": lambda c, i, row: AdminReviewsApi(c).toggle_feature(i)},
    action_aliases={"approve": "publish", "reject": "trash", "mark as spam": "spam", "move to trash": "trash"},
)

comments = ListResource(
    name="comments",
    items_key="comments",
    model=AdminComment,
    list_call=lambda c, p: AdminCommentsApi(c).list(p),
    search_param="query",
    search_fields=["content", "displayName", "review.title"],
    lifecycle=comment_lifecycle,
    delete_call=lambda c, i, row: AdminCommentsApi(c).delete(i),
    batch_call=lambda c, action, ids: AdminCommentsApi(c).bulk(action, ids),
    batch_actions=["publish", "hide", "pending"],
    status_aliases={"spam": "hidden", "trash": "pending"},
    action_aliases={"approve": "publish"},
)


# ---------------------- User activities ----------------------
activities = ListResource(
    name="activities",
    items_key="activities",
    model=Activity,
    list_call=lambda c, p: UsersApi(c).activities(p),
    search_fields=["user", "ipClaimed", "merchant", "promotionTitle", "code"],
    status_of=lambda row: None,
)


RESOURCES = {
    r.name: r for r in (merchants, posts, categories, promotions, users, reports, reviews, comments, activities)
}


def get_resource(name: str) -> Optional[ListResource]:
    return RESOURCES.get(name)

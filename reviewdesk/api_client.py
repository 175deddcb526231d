"""
Client facade for the upstream review backend.

Every call resolves to an ``ApiResult``: ``data`` on a 2xx response,
``error`` otherwise. Transport failures never escape as exceptions; they
are logged and mapped to ``NETWORK_ERROR`` so callers only branch on the
result.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

NETWORK_ERROR = "Network error. Please check your connection."
DEFAULT_ERROR = "An error occurred"


class UpstreamError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ApiResult(BaseModel):
    data: Optional[Any] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise UpstreamError(self.error, self.status_code)
        return self.data


class UploadedFile(BaseModel):
    """A file held in form state until it is sent as a multipart part."""
    filename: str
    content_type: str = "application/octet-stream"
    content: bytes = b""

    @property
    def size(self) -> int:
        return len(self.content)


class FormPayload(BaseModel):
    """Structured form body plus file parts.

    Sent as multipart when any file is attached, JSON otherwise.
    """
    data: Dict[str, Any] = {}
    files: List[Tuple[str, UploadedFile]] = []
    # dict fields sent as ``key[sub]`` parts instead of a JSON string
    bracketed: List[str] = []

    @property
    def is_multipart(self) -> bool:
        return bool(self.files)

    def form_fields(self) -> Dict[str, str]:
        fields = {}
        for key, value in self.data.items():
            if value is None:
                continue
            if key in self.bracketed and isinstance(value, dict):
                for sub, sub_value in value.items():
                    if sub_value not in (None, ""):
                        fields[f"{key}[{sub}]"] = str(sub_value)
            elif isinstance(value, bool):
                fields[key] = "true" if value else "false"
            elif isinstance(value, (dict, list)):
                fields[key] = json.dumps(value)
            else:
                fields[key] = str(value)
        return fields

    def file_parts(self) -> List[Tuple[str, Tuple[str, bytes, str]]]:
        return [(name, (f.filename, f.content, f.content_type)) for name, f in self.files]


def clean_params(params: Optional[Dict[str, Any]]) -> List[Tuple[str, str]]:
    """Drop unset values, repeat list values under the same key."""
    pairs = []
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        values: Iterable[Any] = value if isinstance(value, (list, tuple)) else [value]
        for v in values:
            if isinstance(v, bool):
                v = "true" if v else "false"
            pairs.append((key, str(v)))
    return pairs


class ApiClient:
    def __init__(self, http: httpx.AsyncClient, token: Optional[str] = None):
        self.http = http
        self.token = token

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        json_body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        form: Optional[FormPayload] = None,
        error_message: str = DEFAULT_ERROR,
    ) -> ApiResult:
        kwargs: Dict[str, Any] = {"headers": self._headers(), "params": clean_params(params)}
        if form is not None:
            if form.is_multipart:
                kwargs["data"] = form.form_fields()
                kwargs["files"] = form.file_parts()
            else:
                kwargs["json"] = form.data
        elif json_body is not None:
            kwargs["json"] = json_body

        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            return ApiResult(error=NETWORK_ERROR)

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            message = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message")
            logger.info("%s %s -> %s", method, path, response.status_code)
            return ApiResult(error=message or error_message, status_code=response.status_code)

        return ApiResult(data=body, status_code=response.status_code)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> ApiResult:
        return await self.request("GET", path, params=params, **kwargs)

    async def post(self, path: str, body: Optional[Any] = None, **kwargs) -> ApiResult:
        return await self.request("POST", path, json_body=body, **kwargs)

    async def put(self, path: str, body: Optional[Any] = None, **kwargs) -> ApiResult:
        return await self.request("PUT", path, json_body=body, **kwargs)

    async def patch(self, path: str, body: Optional[Any] = None, **kwargs) -> ApiResult:
        return await self.request("PATCH", path, json_body=body, **kwargs)

    async def delete(self, path: str, **kwargs) -> ApiResult:
        return await self.request("DELETE", path, **kwargs)


# ---------------------- Merchants ----------------------
class MerchantsApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list(self, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        return await self.client.get("/admin/merchants", params, error_message="Failed to fetch merchants")

    async def search_public(self, search: str, limit: int = 10, exclude_drafts: bool = True) -> ApiResult:
        params = {"search": search, "limit": limit, "excludeDrafts": exclude_drafts}
        return await self.client.get("/merchants", params, error_message="Failed to fetch merchants")

    async def get(self, merchant_id: str) -> ApiResult:
        return await self.client.get(f"/admin/merchants/{merchant_id}", error_message="Merchant not found")

    async def create(self, payload: FormPayload) -> ApiResult:
        return await self.client.request("POST", "/admin/merchants", form=payload,
                                         error_message="Failed to create merchant")

    async def update(self, merchant_id: str, payload: FormPayload) -> ApiResult:
        return await self.client.request("PUT", f"/admin/merchants/{merchant_id}", form=payload,
                                         error_message="Failed to update merchant")

    async def delete(self, merchant_id: str) -> ApiResult:
        return await self.client.delete(f"/admin/merchants/{merchant_id}", error_message="Failed to delete merchant")

    async def bulk(self, action: str, ids: List[str]) -> ApiResult:
        return await self.client.post("/admin/merchants/bulk", {"action": action, "ids": ids},
                                      error_message="Bulk action failed")


# ---------------------- Content ----------------------
class ContentApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list_posts(self, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        return await self.client.get("/admin/content/posts", params, error_message="Failed to fetch posts")

    async def get_post(self, identifier: str) -> ApiResult:
        return await self.client.get(f"/admin/content/posts/{identifier}", error_message="Failed to fetch post")

    async def create_post(self, data: Dict[str, Any]) -> ApiResult:
        return await self.client.post("/admin/content/posts", data, error_message="Failed to create post")

    async def update_post(self, post_id: str, data: Dict[str, Any]) -> ApiResult:
        return await self.client.put(f"/admin/content/posts/{post_id}", data, error_message="Failed to update post")

    async def delete_post(self, post_id: str, permanent: bool = False) -> ApiResult:
        params = {"permanent": True} if permanent else None
        return await self.client.delete(f"/admin/content/posts/{post_id}", params=params,
                                        error_message="Failed to delete post")

    async def bulk_posts(self, action: str, post_ids: List[str]) -> ApiResult:
        return await self.client.post("/admin/content/posts/bulk", {"action": action, "postIds": post_ids},
                                      error_message="Failed to perform bulk operation")

    async def restore_post(self, post_id: str) -> ApiResult:
        return await self.client.post(f"/admin/content/posts/{post_id}/restore", error_message="Failed to restore post")

    async def duplicate_post(self, post_id: str) -> ApiResult:
        return await self.client.post(f"/admin/content/posts/{post_id}/duplicate",
                                      error_message="Failed to duplicate post")

    async def list_categories(self, include_inactive: bool = False) -> ApiResult:
        params = {"includeInactive": True} if include_inactive else None
        return await self.client.get("/admin/content/categories", params, error_message="Failed to fetch categories")

    async def create_category(self, data: Dict[str, Any]) -> ApiResult:
        return await self.client.post("/admin/content/categories", data, error_message="Failed to create category")

    async def update_category(self, category_id: str, data: Dict[str, Any]) -> ApiResult:
        return await self.client.put(f"/admin/content/categories/{category_id}", data,
                                     error_message="Failed to update category")

    async def delete_category(self, category_id: str, move_posts_to: Optional[str] = None) -> ApiResult:
        return await self.client.delete(f"/admin/content/categories/{category_id}",
                                        params={"movePostsTo": move_posts_to},
                                        error_message="Failed to delete category")

    async def tags(self) -> ApiResult:
        return await self.client.get("/admin/content/tags", error_message="Failed to fetch tags")

    async def statistics(self) -> ApiResult:
        return await self.client.get("/admin/content/statistics", error_message="Failed to fetch statistics")


# ---------------------- Promotions ----------------------
class PromotionsApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list(self, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        return await self.client.get("/admin/promotions", params, error_message="Failed to load promotions")

    async def get(self, promotion_id: str) -> ApiResult:
        return await self.client.get(f"/admin/promotions/{promotion_id}", error_message="Promotion not found")

    async def create(self, data: Dict[str, Any]) -> ApiResult:
        return await self.client.post("/admin/promotions", data, error_message="Failed to create promotion")

    async def update(self, promotion_id: str, data: Dict[str, Any]) -> ApiResult:
        return await self.client.patch(f"/admin/promotions/{promotion_id}", data,
                                       error_message="Failed to update promotion")

    async def delete(self, promotion_id: str) -> ApiResult:
        return await self.client.delete(f"/admin/promotions/{promotion_id}", error_message="Failed to delete promotion")


# ---------------------- Users ----------------------
class UsersApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list(self, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        return await self.client.get("/admin/users", params, error_message="Failed to fetch users")

    async def get(self, user_id: str) -> ApiResult:
        return await self.client.get(f"/admin/users/{user_id}", error_message="User not found")

    async def create(self, data: Dict[str, Any]) -> ApiResult:
        return await self.client.post("/admin/users", data, error_message="Failed to create user")

    async def update_status(self, user_id: str, data: Dict[str, Any]) -> ApiResult:
        return await self.client.patch(f"/admin/users/{user_id}/status", data,
                                       error_message="Failed to update user status")

    async def delete(self, user_id: str) -> ApiResult:
        return await self.client.delete(f"/admin/users/{user_id}", error_message="Failed to delete user")

    async def bulk(self, action: str, ids: List[str]) -> ApiResult:
        return await self.client.post("/admin/users/bulk", {"action": action, "ids": ids},
                                      error_message="Failed to perform bulk action")

    async def activities(self, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        return await self.client.get("/admin/users/activities", params, error_message="Failed to fetch activities")


# ---------------------- Reports ----------------------
class ReportsApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list(self, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        return await self.client.get("/admin/reports", params, error_message="Failed to fetch reports")

    async def accept(self, content_id: str, content_type: str) -> ApiResult:
        return await self.client.post(f"/admin/reports/{content_id}/accept", params={"contentType": content_type},
                                      error_message="Failed to accept report")

    async def reject(self, content_id: str, content_type: str) -> ApiResult:
        return await self.client.post(f"/admin/reports/{content_id}/reject", params={"contentType": content_type},
                                      error_message="Failed to reject report")

    async def stats(self) -> ApiResult:
        return await self.client.get("/admin/reports/stats", error_message="Failed to fetch report stats")


# ---------------------- Moderation ----------------------
class AdminReviewsApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list(self, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        return await self.client.get("/admin/reviews", params, error_message="Failed to fetch reviews")

    async def get(self, review_id: str) -> ApiResult:
        return await self.client.get(f"/admin/reviews/{review_id}", error_message="Review not found")

    async def update(self, review_id: str, data: Dict[str, Any]) -> ApiResult:
        return await self.client.put(f"/admin/reviews/{review_id}", data, error_message="Failed to update review")

    async def update_status(self, review_id: str, status: str) -> ApiResult:
        return await self.client.patch(f"/admin/reviews/{review_id}/status", {"status": status},
                                       error_message="Failed to update review status")

    async def toggle_feature(self, review_id: str) -> ApiResult:
        return await self.client.patch(f"/admin/reviews/{review_id}/feature",
                                       error_message="Failed to update review")

    async def delete(self, review_id: str) -> ApiResult:
        return await self.client.delete(f"/admin/reviews/{review_id}", error_message="Failed to delete review")

    async def bulk(self, action: str, ids: List[str]) -> ApiResult:
        return await self.client.post("/admin/reviews/bulk", {"action": action, "ids": ids},
                                      error_message="Failed to perform bulk action")


class AdminCommentsApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def list(self, params: Optional[Dict[str, Any]] = None) -> ApiResult:
        return await self.client.get("/admin/comments", params, error_message="Failed to fetch comments")

    async def get(self, comment_id: str) -> ApiResult:
        return await self.client.get(f"/admin/comments/{comment_id}", error_message="Comment not found")

    async def update(self, comment_id: str, data: Dict[str, Any]) -> ApiResult:
        return await self.client.put(f"/admin/comments/{comment_id}", data, error_message="Failed to update comment")

    async def update_status(self, comment_id: str, status: str) -> ApiResult:
        return await self.client.patch(f"/admin/comments/{comment_id}/status", {"status": status},
                                       error_message="Failed to update comment status")

    async def delete(self, comment_id: str) -> ApiResult:
        return await self.client.delete(f"/admin/comments/{comment_id}", error_message="Failed to delete comment")

    async def bulk(self, action: str, ids: List[str]) -> ApiResult:
        return await self.client.post("/admin/comments/bulk", {"action": action, "ids": ids},
                                      error_message="Failed to perform bulk action")


# ---------------------- Settings ----------------------
class SettingsApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def security(self) -> ApiResult:
        return await self.client.get("/admin/settings/security", error_message="Failed to load security settings")

    async def update_security(self, data: Dict[str, Any]) -> ApiResult:
        return await self.client.put("/admin/settings/security", data,
                                     error_message="Failed to save security settings")


# ---------------------- Reviews & auth ----------------------
class ReviewsApi:
    def __init__(self, client: ApiClient):
        self.client = client

    async def get(self, slug: str) -> ApiResult:
        return await self.client.get(f"/reviews/{slug}", error_message="Review not found")

    async def mine(self, page: int = 1, limit: int = 20) -> ApiResult:
        return await self.client.get("/users/me/reviews", {"page": page, "limit": limit},
                                     error_message="Failed to fetch reviews")

    async def delete_mine(self, review_id: str) -> ApiResult:
        return await self.client.delete(f"/reviews/{review_id}", error_message="Failed to delete review")

    async def add_comment(self, review_id: str, reaction: str, content: Optional[str] = None,
                          display_name: Optional[str] = None) -> ApiResult:
        body = {"reaction": reaction, "content": content, "displayName": display_name}
        return await self.client.post(f"/reviews/{review_id}/comments", body,
                                      error_message="Failed to submit comment")


async def login(client: ApiClient, email: str, password: str) -> ApiResult:
    return await client.post("/auth/login", {"email": email, "password": password},
                             error_message="Incorrect email or password")

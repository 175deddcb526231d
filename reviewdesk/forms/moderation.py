"""
Moderator edits of user content: a review's title, body and status, and a
comment's text, reaction and status. Text goes to the entity endpoint;
a status change goes to its own ``/status`` endpoint afterwards.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..api_client import AdminCommentsApi, AdminReviewsApi, ApiResult
from ..lifecycle import EntityLifecycle, comment_lifecycle, review_lifecycle
from ..reviews import EMOJI_REACTIONS, REACTION_EMOJIS
from ..sanitize import sanitize_html, validate_content
from .base import FormController

# keeps the current status
SAVE = "save"


class ReviewEditValues(BaseModel):
    title: str = ""
    content: str = ""
    status: str = "published"


class CommentEditValues(BaseModel):
    content: str = ""
    display_name: str = ""
    reaction: str = "love"
    status: str = "published"


class ModerationForm(FormController):
    lifecycle: EntityLifecycle

    def current_status(self) -> str:
        return self.record.get("status") or self.values_model().status

    def target_status(self, action: str) -> str:
        if action == SAVE:
            return self.current_status()
        return self.lifecycle.next_status(self.current_status(), action)

    async def save_fields(self, payload: Dict[str, Any]) -> ApiResult:
        raise NotImplementedError

    async def update_status(self, status: str) -> ApiResult:
        raise NotImplementedError

    async def send(self, payload: Dict[str, Any]) -> ApiResult:
        status = payload.pop("status")
        result = await self.save_fields(payload)
        if not result.ok or status == self.current_status():
            return result
        return await self.update_status(status)


# ---------------------- Reviews ----------------------
class ReviewEditForm(ModerationForm):
    values_model = ReviewEditValues
    entity_key = "review"
    list_path = "/admin/reviews"
    failure_message = "Failed to update review"
    lifecycle = review_lifecycle

    async def fetch(self) -> ApiResult:
        return await AdminReviewsApi(self.client).get(self.entity_id)

    def from_record(self, r: Dict[str, Any]) -> ReviewEditValues:
        return ReviewEditValues(
            title=r.get("title") or "",
            content=r.get("content") or "",
            status=r.get("status") or "published",
        )

    def validate(self) -> Dict[str, str]:
        v = self.values
        errors = {}
        if not v.title.strip():
            errors["title"] = "Title is required"
        check = validate_content(v.content)
        if not check.is_valid:
            errors["content"] = check.errors[0]
        return errors

    def build_payload(self, action: str) -> Dict[str, Any]:
        return {
            "title": self.values.title.strip(),
            "content": sanitize_html(self.values.content),
            "status": self.target_status(action),
        }

    async def save_fields(self, payload: Dict[str, Any]) -> ApiResult:
        return await AdminReviewsApi(self.client).update(self.entity_id, payload)

    async def update_status(self, status: str) -> ApiResult:
        return await AdminReviewsApi(self.client).update_status(self.entity_id, status)


# ---------------------- Comments ----------------------
def reaction_name(value: Optional[str]) -> str:
    """Comments store the emoji; the form works with its name."""
    if value in REACTION_EMOJIS:
        return value
    return EMOJI_REACTIONS.get(value or "", "love")


class CommentEditForm(ModerationForm):
    values_model = CommentEditValues
    entity_key = "comment"
    list_path = "/admin/comments"
    failure_message = "Failed to update comment"
    lifecycle = comment_lifecycle

    async def fetch(self) -> ApiResult:
        return await AdminCommentsApi(self.client).get(self.entity_id)

    def from_record(self, c: Dict[str, Any]) -> CommentEditValues:
        return CommentEditValues(
            content=c.get("content") or "",
            display_name=c.get("displayName") or "",
            reaction=reaction_name(c.get("reaction")),
            status=c.get("status") or "published",
        )

    def validate(self) -> Dict[str, str]:
        errors = {}
        if self.values.reaction not in REACTION_EMOJIS:
            errors["reaction"] = "Invalid reaction"
        return errors

    def build_payload(self, action: str) -> Dict[str, Any]:
        v = self.values
        return {
            "content": sanitize_html(v.content),
            "displayName": v.display_name.strip() or "Anonymous User",
            "reaction": REACTION_EMOJIS[v.reaction],
            "status": self.target_status(action),
        }

    async def save_fields(self, payload: Dict[str, Any]) -> ApiResult:
        return await AdminCommentsApi(self.client).update(self.entity_id, payload)

    async def update_status(self, status: str) -> ApiResult:
        return await AdminCommentsApi(self.client).update_status(self.entity_id, status)

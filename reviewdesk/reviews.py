"""
Review detail reactions and the signed-in user's review list.

Reaction counters and bookmarks are local to the viewer and never sent
upstream. The "my reviews" list goes through the query cache so a
deleted review disappears from the cached page at once while a
background refetch reconciles with the server.
"""
import logging
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .api_client import ApiClient, ApiResult, ReviewsApi, UpstreamError
from .list_view import sort_rows
from .query_cache import QueryCache
from .schemas import Review

logger = logging.getLogger(__name__)

REACTION_EMOJIS = {"love": "❤️", "cry": "😢", "angry": "😡"}
EMOJI_REACTIONS = {emoji: name for name, emoji in REACTION_EMOJIS.items()}

MY_REVIEWS_KEY = "myReviews"
MY_REVIEWS_STALE = 2 * 60
MY_REVIEWS_GC = 10 * 60
MY_REVIEWS_LIMIT = 20
FILTERS = ["all", "recent", "most-comments"]


def reaction_emoji(name: Optional[str]) -> str:
    return REACTION_EMOJIS.get(name or "", REACTION_EMOJIS["love"])


def emoticon_counts(review: Dict[str, Any]) -> Dict[str, int]:
    counts = {name: 0 for name in REACTION_EMOJIS}
    for comment in review.get("comments") or []:
        name = EMOJI_REACTIONS.get(comment.get("reaction"))
        if name:
            counts[name] += 1
    return counts


class ReactionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    counts: Dict[str, int] = {name: 0 for name in REACTION_EMOJIS}
    mine: FrozenSet[str] = frozenset()
    bookmarked: bool = False

    @classmethod
    def for_review(cls, review: Dict[str, Any]) -> "ReactionState":
        return cls(counts={
            "love": int(review.get("helpful") or 0),
            "cry": int(review.get("notHelpful") or 0),
            "angry": 0,
        })

    def toggle(self, name: str) -> "ReactionState":
        if name not in REACTION_EMOJIS:
            raise ValueError(f"Unknown reaction: {name}")
        counts = dict(self.counts)
        if name in self.mine:
            counts[name] = max(0, counts.get(name, 0) - 1)
            return self.model_copy(update={"counts": counts, "mine": self.mine - {name}})
        counts[name] = counts.get(name, 0) + 1
        return self.model_copy(update={"counts": counts, "mine": self.mine | {name}})

    def toggle_bookmark(self) -> "ReactionState":
        return self.model_copy(update={"bookmarked": not self.bookmarked})


# ---------------------- Detail ----------------------
async def review_detail(client: ApiClient, slug: str) -> Dict[str, Any]:
    result = await ReviewsApi(client).get(slug)
    body = result.unwrap()
    raw = body.get("review", body) if isinstance(body, dict) else {}
    try:
        review = Review.model_validate(raw).model_dump(by_alias=True)
    except ValidationError:
        raise UpstreamError("Malformed review response")
    return {
        "review": review,
        "reactions": ReactionState.for_review(review).model_dump(mode="json"),
        "emoticons": emoticon_counts(review),
    }


async def add_comment(client: ApiClient, review: Dict[str, Any], reaction: Optional[str],
                      content: str, display_name: Optional[str] = None) -> ApiResult:
    result = await ReviewsApi(client).add_comment(
        review["id"], reaction_emoji(reaction), content, display_name or "Anonymous User")
    if result.ok and isinstance(result.data, dict) and result.data.get("comment"):
        review["comments"] = list(review.get("comments") or []) + [result.data["comment"]]
    return result


# ---------------------- My reviews ----------------------
class MyReviewsController:
    def __init__(self, client: ApiClient, cache: QueryCache, user_id: str):
        self.client = client
        self.cache = cache
        self.user_id = user_id

    def key(self, page: int):
        return (MY_REVIEWS_KEY, page, self.user_id)

    async def page(self, page: int = 1) -> Dict[str, Any]:
        async def fetcher():
            # errors raise so that failures are never cached
            return (await ReviewsApi(self.client).mine(page, MY_REVIEWS_LIMIT)).unwrap()

        return await self.cache.fetch(self.key(page), fetcher, stale_time=MY_REVIEWS_STALE)

    async def view(self, page: int = 1, view_filter: str = "all") -> Dict[str, Any]:
        data = await self.page(page)
        reviews = list(data.get("reviews") or [])
        order = view_filter if view_filter in ("recent", "most-comments") else None
        rows = [{**r, "emoticons": emoticon_counts(r)} for r in sort_rows(reviews, order)]
        pagination = data.get("pagination") or {}
        return {"reviews": rows, "page": page, "pages": pagination.get("pages") or 1, "filter": view_filter}

    async def delete(self, review_id: str, page: int = 1) -> ApiResult:
        result = await ReviewsApi(self.client).delete_mine(review_id)
        if not result.ok:
            logger.warning("Failed to delete review %s: %s", review_id, result.error)
            return result

        def remove(old):
            if not old:
                return old
            return {**old, "reviews": [r for r in old.get("reviews") or [] if r.get("id") != review_id]}

        self.cache.set_query_data(self.key(page), remove)
        self.cache.invalidate((MY_REVIEWS_KEY,))
        logger.info("Deleted review %s for user %s", review_id, self.user_id)
        return result

    def cached_ids(self, page: int = 1) -> List[str]:
        data = self.cache.get_query_data(self.key(page)) or {}
        return [r.get("id") for r in data.get("reviews") or []]

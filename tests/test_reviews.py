import asyncio

import httpx
import pytest

from reviewdesk.query_cache import QueryCache
from reviewdesk.reviews import MyReviewsController, ReactionState, add_comment, review_detail

REVIEW = {"review": {
    "id": "r1", "slug": "great-pho", "title": "Great phở", "rating": 5, "content": "Loved it",
    "helpful": 3, "notHelpful": 1,
    "comments": [
        {"id": "c1", "reaction": "❤️", "content": "Agree"},
        {"id": "c2", "reaction": "😡", "content": "No"},
        {"id": "c3", "reaction": "❤️"},
    ],
}}


def test_reaction_toggle():
    state = ReactionState.for_review(REVIEW["review"])
    assert state.counts == {"love": 3, "cry": 1, "angry": 0}
    state = state.toggle("angry")
    assert state.counts["angry"] == 1
    assert state.mine == {"angry"}
    state = state.toggle("angry")
    assert state.counts["angry"] == 0
    assert state.toggle_bookmark().bookmarked
    with pytest.raises(ValueError):
        state.toggle("wow")


def test_review_detail_counts_emoticons(upstream, api):
    upstream.add("GET", "/reviews/great-pho", REVIEW)
    detail = asyncio.run(review_detail(api, "great-pho"))
    assert detail["emoticons"] == {"love": 2, "cry": 0, "angry": 1}
    assert detail["reactions"]["counts"]["love"] == 3
    assert detail["review"]["notHelpful"] == 1


def test_add_comment_appends(upstream, api):
    upstream.add("POST", "/reviews/r1/comments", {"comment": {"id": "c4", "reaction": "😢", "content": "Sad"}})
    review = {"id": "r1", "comments": []}
    result = asyncio.run(add_comment(api, review, "cry", "Sad"))
    assert result.ok
    assert review["comments"][0]["id"] == "c4"
    assert upstream.json_sent("POST", "/reviews/r1/comments") == {
        "reaction": "😢", "content": "Sad", "displayName": "Anonymous User",
    }


def test_delete_removes_from_cache_then_refetches(upstream, api):
    pages = [
        {"reviews": [{"id": "a", "createdAt": "2026-01-01"}, {"id": "b", "createdAt": "2026-02-01"}],
         "pagination": {"pages": 1}},
        {"reviews": [{"id": "b", "createdAt": "2026-02-01"}], "pagination": {"pages": 1}},
    ]
    upstream.add("GET", "/users/me/reviews", handler=lambda r: httpx.Response(200, json=pages[0]))
    upstream.add("DELETE", "/reviews/a", {"success": True})
    controller = MyReviewsController(api, QueryCache(), "u2")

    async def run():
        view = await controller.view(1, "recent")
        assert [r["id"] for r in view["reviews"]] == ["b", "a"]
        pages.pop(0)
        await controller.delete("a", 1)
        assert controller.cached_ids(1) == ["b"]
        await controller.cache.drain()

    asyncio.run(run())
    assert len(upstream.sent("GET", "/users/me/reviews")) == 2
    assert controller.cached_ids(1) == ["b"]


def test_failed_delete_leaves_cache(upstream, api):
    upstream.add("GET", "/users/me/reviews", {"reviews": [{"id": "a"}]})
    upstream.add("DELETE", "/reviews/a", {"error": "Forbidden"}, status=403)
    controller = MyReviewsController(api, QueryCache(), "u2")

    async def run():
        await controller.page(1)
        return await controller.delete("a", 1)

    result = asyncio.run(run())
    assert result.error == "Forbidden"
    assert controller.cached_ids(1) == ["a"]

import asyncio
from datetime import datetime, timezone

import pytest

from reviewdesk.forms import CategoryForm, PostForm, parent_options
from reviewdesk.lifecycle import InvalidTransition

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
BODY = "<p>A long enough post body about street food.</p>"

TREE = {"categories": [
    {"id": "1", "name": "Food", "slug": "food", "children": [
        {"id": "2", "name": "Street", "slug": "street", "parentId": "1", "children": [
            {"id": "4", "name": "Noodles", "slug": "noodles", "parentId": "2"},
        ]},
    ]},
    {"id": "3", "name": "Travel", "slug": "travel"},
]}


def post_form(api, post_id=None):
    form = PostForm(api, post_id, clock=lambda: NOW)
    form.set_field("title", "Best Phở in Town")
    form.set_content(BODY + "<script>x()</script>")
    form.set_field("category_id", "1")
    return form


def test_post_content_sanitized_and_required_fields(api):
    form = PostForm(api)
    assert form.validate()["title"] == "Title is required"
    assert form.validate()["category_id"] == "Category is required"
    form = post_form(api)
    assert "script" not in form.values.content
    assert form.values.slug == "best-pho-in-town"
    assert form.validate() == {}


def test_long_article_is_saved(upstream, api):
    upstream.add("POST", "/admin/content/posts", {"post": {"id": "p2"}})
    form = post_form(api)
    form.set_content("<p>" + "Phở bò tái nạm gầu gân. " * 200 + "</p>")
    assert asyncio.run(form.submit("publish")).ok
    assert len(upstream.json_sent("POST", "/admin/content/posts")["content"]) > 3000

    form.set_content("<p> </p>")
    assert form.validate() == {"content": "Content is required"}


def test_publish_in_future_schedules(upstream, api):
    upstream.add("POST", "/admin/content/posts", {"post": {"id": "p1"}})
    form = post_form(api)
    form.set_field("scheduled_at", "2026-03-02T08:00:00Z")
    form.set_tags("Food, food, Hanoi")
    assert asyncio.run(form.submit("publish")).ok
    body = upstream.json_sent("POST", "/admin/content/posts")
    assert body["status"] == "scheduled"
    assert body["scheduledAt"] == "2026-03-02T08:00:00Z"
    assert body["tags"] == ["Food", "Hanoi"]
    assert body["excerpt"] == "A long enough post body about street food."


def test_publish_with_past_date_publishes_now(upstream, api):
    upstream.add("POST", "/admin/content/posts", {"post": {"id": "p1"}})
    form = post_form(api)
    form.set_field("scheduled_at", "2026-02-01T08:00:00Z")
    asyncio.run(form.submit("publish"))
    body = upstream.json_sent("POST", "/admin/content/posts")
    assert body["status"] == "published"
    assert "scheduledAt" not in body


def test_trashed_post_cannot_be_published(upstream, api):
    upstream.add("GET", "/admin/content/posts/p1", {"post": {
        "id": "p1", "title": "Old", "slug": "old", "content": BODY, "categoryId": "1", "status": "trash",
    }})
    form = PostForm(api, "p1", clock=lambda: NOW)
    asyncio.run(form.load())
    with pytest.raises(InvalidTransition):
        asyncio.run(form.submit("publish"))


def test_parent_options_exclude_self_and_descendants():
    options = parent_options(TREE["categories"], exclude_id="2")
    assert [o.id for o in options] == ["1", "3"]
    assert [o.label for o in parent_options(TREE["categories"])][2] == "— — Noodles"


def test_category_cannot_move_under_descendant(upstream, api):
    upstream.add("GET", "/admin/content/categories", TREE)
    form = CategoryForm(api, "1")
    asyncio.run(form.load())
    assert form.values.name == "Food"
    form.set_field("parent_id", "4")
    assert form.validate()["parent_id"] == "A category cannot be moved under its own subcategory"
    form.set_field("parent_id", "1")
    assert form.validate()["parent_id"] == "A category cannot be its own parent"


def test_missing_category_is_not_found(upstream, api):
    upstream.add("GET", "/admin/content/categories", TREE)
    result = asyncio.run(CategoryForm(api, "99").load())
    assert (result.error, result.status_code) == ("Category not found", 404)


def test_category_draft_is_inactive(upstream, api):
    upstream.add("POST", "/admin/content/categories", {"category": {"id": "5"}})
    form = CategoryForm(api)
    form.set_field("name", "Cà Phê")
    assert asyncio.run(form.submit("save_draft")).redirect == "/admin/posts/categories"
    body = upstream.json_sent("POST", "/admin/content/categories")
    assert body["slug"] == "ca-phe"
    assert body["isActive"] is False

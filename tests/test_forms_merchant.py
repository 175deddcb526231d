import asyncio

import pytest
from conftest import png

from reviewdesk.forms import MerchantForm
from reviewdesk.lifecycle import InvalidTransition

RECORD = {
    "merchant": {
        "id": "5",
        "name": "Bún Chả Hương Liên",
        "slug": "bun-cha-obama",
        "description": "Famous noodle shop",
        "category": "food",
        "email": "hello@huonglien.vn",
        "status": "trusted",
        "logo": "https://cdn.test/logo.png",
        "metaTitle": "Legacy title",
        "faq": [{"question": "Open late?", "answer": "Until 9pm"}],
        "utm": {"source": "fb"},
    }
}


def filled_form(api):
    form = MerchantForm(api)
    form.update(name="Bánh Mì Huỳnh Hoa", description="Sandwiches", category="food", email="hi@hh.vn")
    form.set_logo(png(64, 64, "logo.png"))
    return form


def test_slug_follows_name(api):
    form = MerchantForm(api)
    form.set_field("name", "Bánh Mì Huỳnh Hoa")
    assert form.values.slug == "banh-mi-huynh-hoa"
    form.set_field("slug", "hh")
    form.set_field("name", "Other")
    assert form.values.slug == "hh"


def test_invalid_form_sends_nothing(upstream, api):
    result = asyncio.run(MerchantForm(api).submit())
    assert not result.ok
    assert not result.sent
    assert result.errors["name"] == "Merchant name is required"
    assert result.errors["logo"] == "Logo image is required"
    assert upstream.calls == []


def test_create_draft_sends_multipart(upstream, api):
    upstream.add("POST", "/admin/merchants", {"merchant": {"id": "9"}}, status=201)
    result = asyncio.run(filled_form(api).submit("save_draft"))
    assert result.ok
    assert result.redirect == "/admin/merchants"
    content = upstream.sent("POST", "/admin/merchants")[0].content
    assert b'name="status"\r\n\r\ndraft' in content
    assert b'name="isDraft"\r\n\r\ntrue' in content
    assert b'filename="logo.png"' in content


def test_edit_hydrates_legacy_fields_and_publishes(upstream, api):
    upstream.add("GET", "/admin/merchants/5", RECORD)
    upstream.add("PUT", "/admin/merchants/5", {"merchant": {"id": "5"}})
    form = MerchantForm(api, "5")

    async def run():
        await form.load()
        assert form.values.seo.title == "Legacy title"
        assert form.values.slug_manually_edited
        assert [f.question for f in form.values.faqs] == ["Open late?"]
        assert not form.is_dirty
        return await form.submit("publish")

    assert asyncio.run(run()).ok
    body = upstream.json_sent("PUT", "/admin/merchants/5")
    assert body["status"] == "recommended"
    assert body["seoTitle"] == "Legacy title"
    assert body["utm"] == {"source": "fb"}
    assert "isDraft" not in body


def test_published_merchant_saved_as_draft(upstream, api):
    upstream.add("GET", "/admin/merchants/5", RECORD)
    upstream.add("PUT", "/admin/merchants/5", {"merchant": {"id": "5"}})
    form = MerchantForm(api, "5")
    asyncio.run(form.load())
    assert asyncio.run(form.submit("save_draft")).ok
    assert upstream.json_sent("PUT", "/admin/merchants/5")["status"] == "draft"


def test_approve_outside_review_rejected(upstream, api):
    upstream.add("GET", "/admin/merchants/5", RECORD)
    form = MerchantForm(api, "5")
    asyncio.run(form.load())
    with pytest.raises(InvalidTransition):
        asyncio.run(form.submit("approve"))
    assert not form.is_submitting
    assert upstream.sent("PUT", "/admin/merchants/5") == []


def test_upstream_error_becomes_general_error(upstream, api):
    upstream.add("POST", "/admin/merchants", {"error": "Slug already exists"}, status=400)
    result = asyncio.run(filled_form(api).submit())
    assert result.sent
    assert result.status_code == 400
    assert result.errors == {"general": "Slug already exists"}


def test_submit_while_submitting_is_ignored(upstream, api):
    form = filled_form(api)
    form.is_submitting = True
    result = asyncio.run(form.submit())
    assert not result.sent
    assert upstream.calls == []


def test_dirty_tracking(upstream, api):
    upstream.add("GET", "/admin/merchants/5", RECORD)
    form = MerchantForm(api, "5")
    asyncio.run(form.load())
    form.set_field("phone", "0123")
    assert form.is_dirty
    form.discard()
    assert not form.is_dirty

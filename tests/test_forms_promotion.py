import asyncio
import json

import httpx

from reviewdesk.api_client import MerchantsApi
from reviewdesk.forms import PromotionBatchForm, PromotionEditForm
from reviewdesk.forms.promotion import MerchantOption, PromotionDraft, search_merchants


def batch(api, *titles):
    form = PromotionBatchForm(api)
    form.select_merchant(MerchantOption(id="m1", name="Alpha"))
    form.values = form.values.model_copy(update={
        "promotions": [PromotionDraft(title=t, description=f"{t} deal") for t in titles],
    })
    return form


def create_handler(request):
    body = json.loads(request.content)
    if body["title"] == "Second":
        return httpx.Response(400, json={"error": "Giftcode already used"})
    return httpx.Response(201, json={"promotion": {"id": body["title"].lower()}})


def test_all_created(upstream, api):
    upstream.add("POST", "/admin/promotions", handler=create_handler)
    result = asyncio.run(batch(api, "First", "Third").submit())
    assert result.ok
    assert result.data["message"] == "2 promotion(s) created successfully!"
    assert [o["id"] for o in result.data["outcomes"]] == ["first", "third"]


def test_partial_failure_keeps_failed_drafts(upstream, api):
    upstream.add("POST", "/admin/promotions", handler=create_handler)
    form = batch(api, "First", "Second", "Third")
    result = asyncio.run(form.submit())
    assert not result.ok
    assert result.sent
    assert result.data["message"] == "2 of 3 promotions created, 1 failed"
    assert result.data["outcomes"][1] == {
        "index": 1, "title": "Second", "ok": False, "id": None, "error": "Giftcode already used",
    }
    assert [p.title for p in form.values.promotions] == ["Second"]
    assert len(upstream.sent("POST", "/admin/promotions")) == 3


def test_validation(api):
    form = PromotionBatchForm(api)
    form.update_promotion(0, "type", "vip")
    errors = form.validate()
    assert errors["merchantId"] == "Please select a merchant"
    assert errors["promotions.0.title"] == "Title is required"
    assert errors["promotions.0.type"] == "Invalid promotion type"
    assert not form.remove_promotion(0)
    assert form.errors["promotions"] == "At least one promotion is required"


def test_merchant_search_excludes_drafts(upstream, api):
    upstream.add("GET", "/merchants", {"merchants": [{"id": 3, "name": "Alpha", "slug": "alpha"}]})
    api_ = MerchantsApi(api)
    assert asyncio.run(search_merchants(api_, "  ")) == []
    options = asyncio.run(search_merchants(api_, "alp"))
    assert options == [MerchantOption(id="3", name="Alpha", slug="alpha")]
    params = upstream.sent("GET", "/merchants")[0].url.params
    assert params["excludeDrafts"] == "true"
    assert params["search"] == "alp"


def test_edit_sends_lowercase_type(upstream, api):
    upstream.add("GET", "/admin/promotions/p9", {"promotion": {
        "id": "p9", "merchantId": "m1", "title": "Tet sale", "description": "10% off", "type": "COMMON",
        "startDate": "2026-01-20T00:00:00Z",
    }})
    upstream.add("PATCH", "/admin/promotions/p9", {"promotion": {"id": "p9"}})
    form = PromotionEditForm(api, "p9")
    asyncio.run(form.load())
    assert form.values.promotion.start_date == "2026-01-20"
    form.update_promotion("title", "Tet mega sale")
    assert asyncio.run(form.submit()).ok
    body = upstream.json_sent("PATCH", "/admin/promotions/p9")
    assert body["type"] == "common"
    assert body["title"] == "Tet mega sale"
    assert body["merchantId"] == "m1"

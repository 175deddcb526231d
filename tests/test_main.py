import json

import httpx
from conftest import make_token, png

MERCHANTS = {
    "merchants": [{"id": "1", "name": "Alpha", "status": "pending"}],
    "pagination": {"page": 1, "limit": 10, "total": 1, "pages": 1},
}


def test_root_and_upstream_check(client, upstream):
    assert client.get("/").json()["message"].endswith("running")
    upstream.add("GET", "/health", {"ok": True})
    data = client.get("/test").json()
    assert data["backend"] == "✅ Running"
    assert data["upstream"] == "✅ Reachable"


def test_schema_lists_resources(client):
    data = client.get("/schema").json()
    assert "merchants" in data["resources"]
    assert data["actions"]["posts"] == ["publish", "draft", "trash", "delete", "restore", "duplicate"]
    assert data["statuses"]["comments"] == ["published", "pending", "hidden"]


def test_admin_routes_require_admin(client, user_headers):
    assert client.get("/admin/merchants").status_code == 401
    assert client.get("/admin/merchants", headers={"Authorization": "Bearer junk"}).status_code == 401
    response = client.get("/admin/merchants", headers=user_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


def test_login_proxies_upstream(client, upstream):
    upstream.add("POST", "/auth/login", {"token": "abc", "user": {"id": "u1"}})
    response = client.post("/auth/login", json={"email": "a@b.c", "password": "secret"})
    assert response.json() == {"access_token": "abc", "token_type": "bearer", "user": {"id": "u1"}}

    upstream.add("POST", "/auth/login", handler=lambda r: httpx.Response(401, text="nope"))
    response = client.post("/auth/login", json={"email": "a@b.c", "password": "bad"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Incorrect email or password"


def test_list_and_dispatch(client, upstream, admin_headers):
    upstream.add("GET", "/admin/merchants", MERCHANTS)
    data = client.get("/admin/merchants?status=pending", headers=admin_headers).json()
    assert data["rows"][0]["statusLabel"] == "Pending Review"
    assert data["rows"][0]["link"] == "/admin/merchants/1/edit"
    assert upstream.sent("GET", "/admin/merchants")[0].headers["Authorization"] == admin_headers["Authorization"]

    state = data["state"]
    response = client.post("/admin/merchants/dispatch", headers=admin_headers,
                           json={"state": state, "action": {"type": "toggle_select", "value": "1"}})
    assert response.json()["fetched"] is False
    assert response.json()["state"]["selected"] == ["1"]

    response = client.post("/admin/merchants/dispatch", headers=admin_headers,
                           json={"state": state, "action": {"type": "set_search", "value": "alp"}})
    assert response.json()["fetched"] is True
    assert upstream.sent("GET", "/admin/merchants")[-1].url.params["query"] == "alp"

    response = client.post("/admin/merchants/dispatch", headers=admin_headers,
                           json={"state": state, "action": {"type": "nope"}})
    assert response.status_code == 400


def test_unknown_resource_and_upstream_failure(client, upstream, admin_headers):
    assert client.get("/admin/widgets", headers=admin_headers).status_code == 404
    upstream.add("GET", "/admin/users", {"error": "Database offline"}, status=500)
    response = client.get("/admin/users", headers=admin_headers)
    assert response.status_code == 502
    assert response.json()["detail"] == "Database offline"


def test_bulk_and_delete(client, upstream, admin_headers):
    upstream.add("GET", "/admin/users", {"users": [], "pagination": {"total": 0, "pages": 0}})
    upstream.add("POST", "/admin/users/bulk", {"success": True})
    upstream.add("DELETE", "/admin/users/u5", {"success": True})
    data = client.post("/admin/users/bulk", headers=admin_headers, json={"action": "delete", "ids": ["u5"]}).json()
    assert data["message"] == "Successfully deleted 1 users"
    assert client.delete("/admin/users/u5", headers=admin_headers).json() == {"ok": True}


def test_create_merchant_multipart(client, upstream, admin_headers):
    upstream.add("POST", "/admin/merchants", {"merchant": {"id": "m1"}}, status=201)
    logo = png(32, 32, "logo.png")
    shot = png(100, 100, "square.png")
    response = client.post(
        "/admin/merchants",
        headers=admin_headers,
        data={"name": "Cơm Tấm Ba Ghiền", "description": "Broken rice", "category": "food",
              "email": "ba@ghien.vn", "utm[source]": "zalo", "faqs": json.dumps([{"id": "1", "question": "Q"}])},
        files=[("logo", ("logo.png", logo.content, "image/png")),
               ("screenshots_0", ("square.png", shot.content, "image/png"))],
    )
    assert response.status_code == 200
    data = response.json()
    assert data["redirect"] == "/admin/merchants"
    assert data["rejectedScreenshots"][0]["filename"] == "square.png"
    content = upstream.sent("POST", "/admin/merchants")[0].content
    assert b'name="slug"\r\n\r\ncom-tam-ba-ghien' in content
    assert b'name="utm[source]"\r\n\r\nzalo' in content
    assert b'name="status"\r\n\r\nrecommended' in content
    assert b"screenshots_0" not in content


def test_create_merchant_validation_errors(client, upstream, admin_headers):
    response = client.post("/admin/merchants", headers=admin_headers, data={"name": "Only a name"})
    assert response.status_code == 422
    errors = response.json()["detail"]["errors"]
    assert errors["email"] == "Email is required"
    assert upstream.sent("POST", "/admin/merchants") == []


def test_published_merchant_draft_and_invalid_move(client, upstream, admin_headers):
    upstream.add("GET", "/admin/merchants/5", {"merchant": {
        "id": "5", "name": "Alpha", "slug": "alpha", "description": "d", "category": "food",
        "email": "a@alpha.vn", "logo": "https://cdn.test/a.png", "status": "trusted",
    }})
    upstream.add("PUT", "/admin/merchants/5", {"merchant": {"id": "5"}})
    response = client.put("/admin/merchants/5", headers=admin_headers, data={"action": "save_draft"})
    assert response.status_code == 200
    assert upstream.json_sent("PUT", "/admin/merchants/5")["status"] == "draft"

    response = client.put("/admin/merchants/5", headers=admin_headers, data={"action": "approve"})
    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot approve merchant in status trusted"


def test_post_upstream_rejection_maps_to_400(client, upstream, admin_headers):
    upstream.add("POST", "/admin/content/posts", {"error": "Slug already exists"}, status=400)
    response = client.post("/admin/posts", headers=admin_headers, json={
        "title": "Hello world", "content": "<p>Some real body text here</p>", "categoryId": "1",
        "tags": ["a", "A", "b"],
    })
    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == {"general": "Slug already exists"}
    assert upstream.json_sent("POST", "/admin/content/posts")["tags"] == ["a", "b"]


def test_category_options(client, upstream, admin_headers):
    upstream.add("GET", "/admin/content/categories", {"categories": [
        {"id": "1", "name": "Food", "children": [{"id": "2", "name": "Street", "parentId": "1"}]},
    ]})
    data = client.get("/admin/categories/options?exclude=2", headers=admin_headers).json()
    assert data == [{"id": "1", "name": "Food", "level": 0, "label": "Food"}]


def test_promotion_batch_partial(client, upstream, admin_headers):
    def create(request):
        body = json.loads(request.content)
        if body["title"] == "B":
            return httpx.Response(400, json={"error": "Duplicate"})
        return httpx.Response(201, json={"promotion": {"id": body["title"]}})

    upstream.add("POST", "/admin/promotions", handler=create)
    response = client.post("/admin/promotions/batch", headers=admin_headers, json={
        "merchantId": "m1",
        "promotions": [{"title": t, "description": "deal"} for t in ("A", "B", "C")],
    })
    assert response.status_code == 207
    assert response.json()["data"]["message"] == "2 of 3 promotions created, 1 failed"


def test_suspension_round_trip(client, upstream, admin_headers):
    upstream.add("GET", "/admin/users/u1", {"user": {"id": "u1", "status": "active"}})
    upstream.add("PATCH", "/admin/users/u1/status", {"user": {"id": "u1"}})
    data = client.get("/admin/users/u1/suspension", headers=admin_headers).json()
    assert data["permanent"] is True
    assert data["willSuspendUntil"] is None

    response = client.put("/admin/users/u1/suspension", headers=admin_headers,
                          json={"reason": "Spam", "duration": 7})
    assert response.json()["redirect"] == "/admin/users/suspended"
    assert upstream.json_sent("PATCH", "/admin/users/u1/status")["suspensionDuration"] == 7


def test_report_decision(client, upstream, admin_headers):
    upstream.add("POST", "/admin/reports/c1/accept", {"success": True})
    response = client.post("/admin/reports/c1/accept?contentType=comment", headers=admin_headers)
    assert response.json()["ok"] is True
    assert upstream.sent("POST", "/admin/reports/c1/accept")[0].url.params["contentType"] == "comment"
    assert client.post("/admin/reports/c1/escalate", headers=admin_headers).status_code == 404


def test_reviews_and_reactions(client, upstream):
    upstream.add("GET", "/reviews/good", {"review": {"id": "r1", "helpful": 2, "comments": []}})
    assert client.get("/reviews/good").json()["reactions"]["counts"]["love"] == 2
    assert client.get("/reviews/missing").status_code == 404

    response = client.post("/reviews/reactions", json={"action": "love"})
    assert response.json()["counts"]["love"] == 1
    assert client.post("/reviews/reactions", json={"action": "wow"}).status_code == 400


def test_my_reviews_delete(client, upstream):
    headers = {"Authorization": f"Bearer {make_token(role='user', user_id='u7')}"}
    upstream.add("GET", "/users/me/reviews", {"reviews": [{"id": "a"}, {"id": "b"}], "pagination": {"pages": 1}})
    upstream.add("DELETE", "/reviews/a", {"success": True})
    data = client.get("/account/reviews", headers=headers).json()
    assert [r["id"] for r in data["reviews"]] == ["a", "b"]

    data = client.delete("/account/reviews/a", headers=headers).json()
    assert data == {"ok": True, "reviews": ["b"]}


def test_dashboard_stats(client, upstream, admin_headers):
    upstream.add("GET", "/admin/content/statistics", {"posts": {"total": 4}})
    upstream.add("GET", "/admin/reports/stats", {"pending": 2})
    data = client.get("/admin/dashboard/stats", headers=admin_headers).json()
    assert data == {"content": {"posts": {"total": 4}}, "reports": {"pending": 2}}


def test_malformed_number_field_is_bad_request(client, upstream, admin_headers):
    response = client.post("/admin/merchants", headers=admin_headers,
                           data={"name": "Alpha", "displayOrder": "first"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Malformed number field"
    assert upstream.sent("POST", "/admin/merchants") == []


def test_off_shape_upstream_records_are_bad_gateway(client, upstream, admin_headers):
    upstream.add("GET", "/reviews/odd", {"review": {"id": "r1", "rating": 9}})
    response = client.get("/reviews/odd")
    assert response.status_code == 502
    assert response.json()["detail"] == "Malformed review response"

    upstream.add("GET", "/admin/merchants", {"merchants": [{"name": "No id"}]})
    response = client.get("/admin/merchants", headers=admin_headers)
    assert response.status_code == 502
    assert response.json()["detail"] == "Malformed merchants response"


def test_moderation_routes(client, upstream, admin_headers):
    upstream.add("GET", "/admin/comments/c1", {"comment": {"id": "c1", "reaction": "❤️", "content": "Nice"}})
    upstream.add("PUT", "/admin/comments/c1", {"comment": {"id": "c1"}})
    response = client.patch("/admin/comments/c1", headers=admin_headers, json={"reaction": "wow"})
    assert response.status_code == 422
    assert response.json()["detail"]["errors"] == {"reaction": "Invalid reaction"}

    response = client.patch("/admin/comments/c1", headers=admin_headers, json={"content": "Very nice"})
    assert response.json()["redirect"] == "/admin/comments"
    assert upstream.json_sent("PUT", "/admin/comments/c1")["content"] == "Very nice"
    assert upstream.sent("PATCH", "/admin/comments/c1/status") == []

    assert client.get("/admin/reviews?rating=9", headers=admin_headers).status_code == 422


def test_security_settings_routes(client, upstream, admin_headers):
    upstream.add("GET", "/admin/settings/security", {"recaptchaV3SecretKey": "v3-secret", "autoSpamThreshold": 60})
    upstream.add("PUT", "/admin/settings/security", {"success": True})
    data = client.get("/admin/settings/security", headers=admin_headers).json()
    assert data["recaptcha_v3_secret_key"] == "********"
    assert data["auto_spam_threshold"] == 60

    response = client.put("/admin/settings/security", headers=admin_headers,
                          json={"enableRecaptchaV3": True, "recaptchaV3SiteKey": "site", "recaptchaV3SecretKey": ""})
    assert response.json()["data"]["enable_recaptcha_v3"] is True
    assert upstream.json_sent("PUT", "/admin/settings/security")["recaptchaV3SecretKey"] == "v3-secret"

    response = client.put("/admin/settings/security", headers=admin_headers, json={"autoSpamThreshold": 101})
    assert response.status_code == 422

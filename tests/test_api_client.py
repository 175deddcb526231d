import asyncio

import httpx
import pytest

from reviewdesk.api_client import (
    NETWORK_ERROR, ApiClient, FormPayload, MerchantsApi, UploadedFile, UpstreamError, clean_params,
)


def test_clean_params():
    assert clean_params({"a": None, "b": "", "c": True, "d": [1, 2], "e": "x"}) == [
        ("c", "true"), ("d", "1"), ("d", "2"), ("e", "x"),
    ]


def test_get_sends_token_and_params(upstream, api):
    upstream.add("GET", "/admin/merchants", {"merchants": []})
    result = asyncio.run(MerchantsApi(api).list({"page": 2, "status": None}))
    assert result.ok
    request = upstream.sent("GET", "/admin/merchants")[0]
    assert request.headers["Authorization"] == "Bearer test-token"
    assert dict(request.url.params) == {"page": "2"}


def test_error_message_from_body_or_fallback(upstream, api):
    upstream.add("GET", "/admin/merchants/1", {"error": "Merchant is archived"}, status=410)
    upstream.add("GET", "/admin/merchants/2", handler=lambda r: httpx.Response(500, text="boom"))
    first = asyncio.run(MerchantsApi(api).get("1"))
    assert (first.error, first.status_code) == ("Merchant is archived", 410)
    second = asyncio.run(MerchantsApi(api).get("2"))
    assert second.error == "Merchant not found"
    with pytest.raises(UpstreamError):
        second.unwrap()


def test_transport_failure_maps_to_network_error():
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.AsyncClient(base_url="http://upstream", transport=httpx.MockTransport(broken))
    result = asyncio.run(ApiClient(http).get("/anything"))
    assert result.error == NETWORK_ERROR
    assert result.status_code is None


def test_multipart_only_with_files(upstream, api):
    upstream.add("POST", "/admin/merchants", {"merchant": {"id": "1"}})
    payload = FormPayload(
        data={"name": "Shop", "isDraft": False, "utm": {"source": "fb", "medium": ""}},
        files=[("logo", UploadedFile(filename="logo.png", content_type="image/png", content=b"png"))],
        bracketed=["utm"],
    )
    asyncio.run(MerchantsApi(api).create(payload))
    request = upstream.sent("POST", "/admin/merchants")[0]
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert b'name="utm[source]"' in request.content
    assert b'name="utm[medium]"' not in request.content
    assert b'filename="logo.png"' in request.content
    assert b"false" in request.content

    asyncio.run(MerchantsApi(api).create(FormPayload(data={"name": "Shop", "utm": {"source": "fb"}})))
    assert upstream.json_sent("POST", "/admin/merchants") == {"name": "Shop", "utm": {"source": "fb"}}

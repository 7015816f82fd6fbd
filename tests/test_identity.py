import httpx
import pytest
from starlette.requests import Request

from gallery.auth.identity import (
    USER_HEADER,
    DenyAllIdentityProvider,
    HeaderIdentityProvider,
    IdentityProvider,
    RemoteIdentityProvider,
    bearer_token,
    build_identity_provider,
)
from gallery.settings import Settings

USER_URL = "https://identity.example/auth/v1/user"


def make_request(headers):
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request(scope={"type": "http", "headers": raw})


def provider_with(handler):
    return RemoteIdentityProvider(USER_URL, transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("header, token", [
    ("Bearer abc", "abc"),
    ("bearer abc", "abc"),
    ("Basic abc", None),
    ("Bearer", None),
    ("", None),
])
def test_bearer_token(header, token):
    assert bearer_token(make_request({"Authorization": header})) == token


@pytest.mark.asyncio
async def test_remote_provider_resolves_user():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"id": "user-42", "email": "a@b.c", "role": "authenticated"})

    provider = provider_with(handler)
    user = await provider.get_current_user(make_request({"Authorization": "Bearer tok"}))
    await provider.close()

    assert seen["auth"] == "Bearer tok"
    assert user.id == "user-42"
    assert user.email == "a@b.c"


@pytest.mark.asyncio
async def test_remote_provider_without_token_makes_no_call():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"id": "x"})

    provider = provider_with(handler)
    assert await provider.get_current_user(make_request({})) is None
    await provider.close()
    assert calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(401, json={"msg": "invalid JWT"}),
    httpx.Response(200, json={"email": "no-id@b.c"}),
    httpx.Response(200, content=b"not json"),
])
async def test_remote_provider_rejects(response):
    provider = provider_with(lambda request: response)
    assert await provider.get_current_user(make_request({"Authorization": "Bearer tok"})) is None
    await provider.close()


@pytest.mark.asyncio
async def test_remote_provider_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    provider = provider_with(handler)
    assert await provider.get_current_user(make_request({"Authorization": "Bearer tok"})) is None
    await provider.close()


@pytest.mark.asyncio
async def test_header_provider():
    provider = HeaderIdentityProvider()
    user = await provider.get_current_user(make_request({USER_HEADER: "user-7"}))
    assert user.id == "user-7"
    assert await provider.get_current_user(make_request({USER_HEADER: "  "})) is None


def test_build_identity_provider():
    remote = build_identity_provider(Settings(identity_url=USER_URL))
    assert isinstance(remote, RemoteIdentityProvider)
    trusted = build_identity_provider(Settings(identity_url=None, trust_user_header=True))
    assert isinstance(trusted, HeaderIdentityProvider)


@pytest.mark.asyncio
async def test_untrusted_header_is_rejected_without_provider():
    provider = build_identity_provider(Settings(identity_url=None, trust_user_header=False))
    assert isinstance(provider, DenyAllIdentityProvider)
    assert await provider.get_current_user(make_request({USER_HEADER: "user-7"})) is None


def test_identity_provider_is_abstract():
    with pytest.raises(TypeError):
        IdentityProvider()

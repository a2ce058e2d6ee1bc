import anyio
import pytest

from conftest import PASSWORD, sign_in_admin, sign_up
from eventura.client.session import FileSessionProvider, MemorySessionProvider
from eventura.errors import AccountSuspended, EmailAlreadyExists, Forbidden, InvalidCredentials, InvalidInput, Unauthenticated
from eventura.schemas.common import AccountStatus, UserRole


pytestmark = pytest.mark.anyio


async def test_login_caches_profile(make_client):
    client = make_client()
    profile = await sign_up(client, "ana@eventura.io")
    assert client.auth.is_authenticated()
    assert profile.email == "ana@eventura.io"
    assert profile.role == UserRole.CLIENT
    assert profile.account_status == AccountStatus.ACTIVE
    assert profile.full_name == "Ana Silva"
    caller = client.auth.caller()
    assert (caller.id, caller.role) == (profile.id, UserRole.CLIENT)


async def test_duplicate_email(make_client):
    client = make_client()
    await client.auth.register("Ana", "Silva", "ana@eventura.io", PASSWORD)
    with pytest.raises(EmailAlreadyExists):
        await client.auth.register("Ana", "Costa", "ANA@eventura.io", PASSWORD)


async def test_concurrent_registration_with_same_email(make_client, monkeypatch):
    first = make_client()
    second = make_client()
    # Both requests pass the lookup before either commits
    monkeypatch.setattr("eventura.auth.router._email_taken", lambda *args, **kwargs: False)
    await first.auth.register("Ana", "Silva", "ana@eventura.io", PASSWORD)
    with pytest.raises(EmailAlreadyExists):
        await second.auth.register("Ana", "Costa", "ana@eventura.io", PASSWORD)


async def test_self_registration_cannot_grant_admin(make_client):
    client = make_client()
    with pytest.raises(InvalidInput):
        await client.auth.register("Eve", "Root", "eve@eventura.io", PASSWORD, role=UserRole.ADMIN)
    assert client.transport.calls == []


async def test_wrong_password(make_client):
    client = make_client()
    await client.auth.register("Ana", "Silva", "ana@eventura.io", PASSWORD)
    with pytest.raises(InvalidCredentials):
        await client.auth.login("ana@eventura.io", "nope-nope")
    assert not client.auth.is_authenticated()


async def test_unauthenticated_response_clears_session(make_client):
    client = make_client()
    await sign_up(client, "ana@eventura.io")
    client.session.set_token(client.session.get_token() + "tampered")
    with pytest.raises(Unauthenticated):
        await client.requests.my_requests()
    assert client.session.get_token() is None
    assert client.auth.profile is None


async def test_calls_without_token_fail_locally(make_client):
    client = make_client()
    with pytest.raises(Unauthenticated):
        await client.notifications.unread_count()
    assert client.transport.calls == []


async def test_logout_wins_over_inflight_refresh(make_client):
    client = make_client()
    await sign_up(client, "ana@eventura.io")
    original = client.api.get

    async def slow_get(endpoint, **kwargs):
        data = await original(endpoint, **kwargs)
        client.auth.logout()
        return data

    client.api.get = slow_get
    profile = await client.auth.refresh()
    client.api.get = original
    assert profile.email == "ana@eventura.io"
    assert client.auth.profile is None
    assert not client.auth.is_authenticated()


async def test_delete_account_blocks_login(make_client):
    client = make_client()
    await sign_up(client, "ana@eventura.io")
    await client.auth.delete_account()
    assert not client.auth.is_authenticated()
    with pytest.raises(InvalidCredentials):
        await client.auth.login("ana@eventura.io", PASSWORD)


async def test_suspended_account_cannot_delete_itself(make_client, create_admin):
    admin = make_client()
    client = make_client()
    ana = await sign_up(client, "ana@eventura.io")
    await sign_in_admin(admin, create_admin)
    await admin.auth.update_user_status(ana.id, AccountStatus.SUSPENDED)

    await client.auth.refresh()
    sent = len(client.transport.calls)
    with pytest.raises(AccountSuspended):
        await client.auth.delete_account()
    assert len(client.transport.calls) == sent
    assert client.auth.is_authenticated()

    # Same rule on the server for callers whose profile is stale
    with pytest.raises(AccountSuspended):
        await client.api.delete("/users/me")
    assert (await admin.auth.get_user(ana.id)).account_status == AccountStatus.SUSPENDED


async def test_update_profile(make_client):
    client = make_client()
    await sign_up(client, "ana@eventura.io")
    updated = await client.auth.update_profile("Ana", "Costa", "ana.costa@eventura.io", mobile_number="+351910000000")
    assert updated.last_name == "Costa"
    assert client.auth.profile.email == "ana.costa@eventura.io"
    assert (await client.auth.get_user(updated.id)).mobile_number == "+351910000000"


async def test_admin_user_management(make_client, create_admin):
    admin = make_client()
    client = make_client()
    ana = await sign_up(client, "ana@eventura.io")
    await sign_in_admin(admin, create_admin)

    users = await admin.auth.list_users(sort="id,asc")
    assert users.total_elements == 2
    with pytest.raises(Forbidden):
        await client.auth.list_users()

    await admin.auth.update_user_status(ana.id, AccountStatus.SUSPENDED)
    notes = await client.notifications.all()
    assert any("SUSPENDED" in n.message for n in notes)


async def test_session_survives_restart(make_client, tmp_path):
    path = tmp_path / "session.json"
    first = make_client(FileSessionProvider(path))
    await sign_up(first, "ana@eventura.io")

    second = make_client(FileSessionProvider(path))
    me = await second.auth.me()
    assert me.email == "ana@eventura.io"


async def test_abandoned_call_keeps_session(make_client):
    client = make_client(MemorySessionProvider())
    await sign_up(client, "ana@eventura.io")
    token = client.session.get_token()
    with anyio.move_on_after(0):
        await client.requests.my_requests()
    assert client.session.get_token() == token

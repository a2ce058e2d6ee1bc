import pytest

from conftest import post_request, sign_in_admin, sign_up
from eventura.errors import Forbidden, InvalidInput, InvalidTransition, NotFound
from eventura.schemas.common import RequestStatus, ServiceType, UserRole


pytestmark = pytest.mark.anyio


async def test_drafts_are_private_until_published(make_client):
    owner = make_client()
    other = make_client()
    provider = make_client()
    await sign_up(owner, "ana@eventura.io")
    await sign_up(other, "rui@eventura.io")
    await sign_up(provider, "bruno@eventura.io", UserRole.PROVIDER)

    draft = await post_request(owner, status=RequestStatus.DRAFT)
    assert draft.status == RequestStatus.DRAFT
    assert (await provider.requests.available()).total_elements == 0
    assert (await other.requests.list()).total_elements == 0
    with pytest.raises(NotFound):
        await other.requests.get(draft.id)
    assert (await owner.requests.my_requests()).total_elements == 1

    published = await owner.requests.publish(draft)
    assert published.status == RequestStatus.OPEN
    page = await provider.requests.available()
    assert [r.id for r in page.content] == [draft.id]
    assert page.content[0].client_name == "Ana Silva"

    # Publishing creates a notification for the owner
    assert await owner.notifications.unread_count() == 1


async def test_cancelled_request_is_terminal(make_client):
    owner = make_client()
    await sign_up(owner, "ana@eventura.io")
    request = await post_request(owner)

    cancelled = await owner.requests.cancel(request)
    assert cancelled.status == RequestStatus.CANCELLED

    # Checked locally against the projection
    with pytest.raises(InvalidTransition):
        await owner.requests.publish(cancelled)
    # And by the server when only the id is known
    with pytest.raises(InvalidTransition):
        await owner.requests.publish(cancelled.id)
    with pytest.raises(InvalidTransition):
        await owner.requests.update_budget(cancelled.id, 900)


async def test_cancel_notifies_pending_pitchers(make_client):
    owner = make_client()
    provider = make_client()
    await sign_up(owner, "ana@eventura.io")
    await sign_up(provider, "bruno@eventura.io", UserRole.PROVIDER)
    request = await post_request(owner)
    await provider.pitches.submit_pitch(request, "Menu", 450)

    await owner.requests.cancel(request.id)
    messages = [n.message for n in await provider.notifications.all()]
    assert any("cancelled" in m for m in messages)


async def test_only_owner_changes_status(make_client):
    owner = make_client()
    other = make_client()
    await sign_up(owner, "ana@eventura.io")
    await sign_up(other, "rui@eventura.io")
    request = await post_request(owner)

    sent = len(other.transport.calls)
    with pytest.raises(Forbidden):
        await other.requests.cancel(request)
    assert len(other.transport.calls) == sent
    with pytest.raises(Forbidden):
        await other.requests.cancel(request.id)


async def test_providers_cannot_create_requests(make_client):
    provider = make_client()
    await sign_up(provider, "bruno@eventura.io", UserRole.PROVIDER)
    with pytest.raises(Forbidden):
        await post_request(provider)


async def test_invalid_budget_is_rejected_locally(make_client):
    owner = make_client()
    await sign_up(owner, "ana@eventura.io")
    sent = len(owner.transport.calls)
    with pytest.raises(InvalidInput):
        await post_request(owner, budget=0)
    with pytest.raises(InvalidInput):
        await post_request(owner, title="")
    assert len(owner.transport.calls) == sent


async def test_budget_can_change_while_open(make_client):
    owner = make_client()
    await sign_up(owner, "ana@eventura.io")
    request = await post_request(owner, budget=500)
    updated = await owner.requests.update_budget(request, 650)
    assert updated.budget == 650


async def test_deleted_requests_are_hidden_except_from_admins(make_client, create_admin):
    owner = make_client()
    admin = make_client()
    await sign_up(owner, "ana@eventura.io")
    await sign_in_admin(admin, create_admin)
    request = await post_request(owner)

    await owner.requests.delete(request)
    with pytest.raises(NotFound):
        await owner.requests.get(request.id)
    assert (await owner.requests.my_requests()).total_elements == 0

    assert (await admin.requests.list()).total_elements == 0
    deleted = await admin.requests.list([RequestStatus.DELETED])
    assert [r.status for r in deleted.content] == [RequestStatus.DELETED]
    with pytest.raises(InvalidTransition):
        await admin.requests.cancel(deleted.content[0])


async def test_filters_combine(make_client):
    owner = make_client()
    await sign_up(owner, "ana@eventura.io")
    catering = await post_request(owner)
    music = await post_request(owner, title="DJ set", service_type=ServiceType.MUSIC)
    cancelled = await post_request(owner, title="Photo booth", service_type=ServiceType.PHOTOGRAPHY)
    await owner.requests.cancel(cancelled)

    page = await owner.requests.list([RequestStatus.OPEN, RequestStatus.CANCELLED], sort="id,asc")
    assert [r.id for r in page.content] == [catering.id, music.id, cancelled.id]
    page = await owner.requests.list([RequestStatus.OPEN], service_type=ServiceType.MUSIC)
    assert [r.id for r in page.content] == [music.id]
    page = await owner.requests.available(service_type=ServiceType.PHOTOGRAPHY)
    assert page.total_elements == 0

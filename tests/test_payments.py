import pytest

from conftest import post_request, sign_up
from eventura.errors import DuplicatePayment, InvalidInput, InvalidRating, InvalidTransition, NotFound
from eventura.schemas.common import PaymentStatus, RequestStatus, UserRole


pytestmark = pytest.mark.anyio


@pytest.fixture
async def assigned(make_client):
    owner = make_client()
    provider = make_client()
    await sign_up(owner, "ana@eventura.io")
    await sign_up(provider, "bruno@eventura.io", UserRole.PROVIDER)
    request = await post_request(owner, budget=500)
    pitch = await provider.pitches.submit_pitch(request, "Menu", 450)
    outcome = await owner.pitches.select_pitch(pitch, request)
    return owner, provider, outcome.request


async def test_payment_requires_assigned_request(make_client):
    owner = make_client()
    await sign_up(owner, "ana@eventura.io")
    request = await post_request(owner)
    with pytest.raises(InvalidTransition):
        await owner.payments.create_payment(request, 450, "CARD")
    with pytest.raises(InvalidTransition):
        await owner.payments.create_payment(request.id, 450, "CARD")


async def test_no_payment_yet(assigned):
    owner, _, request = assigned
    with pytest.raises(NotFound):
        await owner.payments.get_status(request)


async def test_amount_must_match_accepted_pitch(assigned):
    owner, _, request = assigned
    with pytest.raises(InvalidInput):
        await owner.payments.create_payment(request, 500, "CARD")
    sent = len(owner.transport.calls)
    with pytest.raises(InvalidInput):
        await owner.payments.create_payment(request, -5, "CARD")
    assert len(owner.transport.calls) == sent


async def test_live_payment_blocks_another(assigned):
    owner, _, request = assigned
    await owner.payments.create_payment(request, 450, "CARD")
    with pytest.raises(DuplicatePayment):
        await owner.payments.create_payment(request.id, 450, "CARD")
    with pytest.raises(DuplicatePayment):
        await owner.payments.retry_payment(request, 450, "CARD")


async def test_failed_payment_can_be_retried(assigned):
    owner, provider, request = assigned
    first = await owner.payments.create_payment(request, 450, "CARD")
    failed = await owner.payments.update_status(first, PaymentStatus.FAILED)
    assert failed.payment_status == PaymentStatus.FAILED

    with pytest.raises(InvalidTransition):
        await owner.payments.update_status(failed, PaymentStatus.COMPLETED)
    with pytest.raises(InvalidTransition):
        await owner.payments.update_status(failed.id, PaymentStatus.COMPLETED)

    second = await owner.payments.retry_payment(request, 450, "MBWAY")
    assert second.id != first.id
    assert second.payment_status == PaymentStatus.PENDING
    latest = await provider.payments.get_status(request.id)
    assert latest.id == second.id

    history = await provider.payments.provider_payments(sort="id,asc")
    assert [p.payment_status for p in history.content] == [PaymentStatus.FAILED, PaymentStatus.PENDING]


async def test_completion_waits_for_payment(assigned):
    owner, provider, request = assigned
    with pytest.raises(InvalidTransition):
        await owner.requests.complete(request)

    payment = await owner.payments.create_payment(request, 450, "CARD")
    with pytest.raises(InvalidTransition):
        await provider.requests.complete(request.id)

    await owner.payments.update_status(payment, PaymentStatus.COMPLETED)
    # The assigned provider may close the job too
    done = await provider.requests.complete(request)
    assert done.status == RequestStatus.COMPLETED
    messages = [n.message for n in await owner.notifications.all()]
    assert any("marked as completed" in m for m in messages)


async def test_out_of_range_rating_never_leaves_the_client(assigned):
    owner, _, request = assigned
    sent = len(owner.transport.calls)
    for rating in (0, 6, 4.5, True):
        with pytest.raises(InvalidRating):
            await owner.reviews.create_review(request.id, rating)
    assert len(owner.transport.calls) == sent


async def test_review_requires_completed_request(assigned):
    owner, _, request = assigned
    with pytest.raises(InvalidTransition):
        await owner.reviews.create_review(request, 5)
    with pytest.raises(InvalidTransition):
        await owner.reviews.create_review(request.id, 5)
    with pytest.raises(NotFound):
        await owner.reviews.review_for_request(request)

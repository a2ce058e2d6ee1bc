from eventura.config import settings
from eventura.errors import (
    AccountSuspended,
    Conflict,
    DuplicatePitch,
    Forbidden,
    InvalidInput,
    InvalidRating,
    NotFound,
    Unauthenticated,
    Unknown,
    error_from_response,
)


def test_code_wins_over_status():
    err = error_from_response(409, {"code": "DUPLICATE_PITCH", "message": "Already pitched"})
    assert isinstance(err, DuplicatePitch)
    assert err.message == "Already pitched"

    err = error_from_response(400, {"code": "INVALID_RATING"})
    assert isinstance(err, InvalidRating)
    assert isinstance(err, InvalidInput)


def test_status_fallback():
    assert isinstance(error_from_response(401, None), Unauthenticated)
    assert isinstance(error_from_response(403, {"detail": "nope"}), Forbidden)
    assert isinstance(error_from_response(404, {}), NotFound)
    assert isinstance(error_from_response(409, {"code": "SOMETHING_NEW"}), Conflict)
    assert isinstance(error_from_response(500, "oops"), Unknown)
    assert isinstance(error_from_response(429, {"error": "Rate limit exceeded"}), Unknown)


def test_validation_detail_becomes_message():
    body = {"detail": [{"loc": ["body", "budget"], "msg": "Input should be greater than 0", "type": "greater_than"}]}
    err = error_from_response(422, body)
    assert isinstance(err, InvalidInput)
    assert err.message == "Input should be greater than 0"


def test_suspension_carries_contact():
    err = AccountSuspended()
    assert err.contact == settings.support_contact
    body = err.to_dict()
    assert body["code"] == "ACCOUNT_SUSPENDED"
    assert body["contact"] == settings.support_contact

    err = error_from_response(403, {"code": "ACCOUNT_SUSPENDED", "message": "Suspended", "contact": "mailto:help@eventura.io"})
    assert isinstance(err, AccountSuspended)
    assert err.contact == "mailto:help@eventura.io"

import jwt
import pytest

from eventura.client.http import build_payload, page_params
from eventura.client.session import FileSessionProvider, MemorySessionProvider, caller_from_token, decode_claims
from eventura.errors import InvalidInput, InvalidToken
from eventura.schemas.common import UserRole
from eventura.schemas.pitches import PitchCreate


def test_memory_session():
    session = MemorySessionProvider()
    assert not session.is_authenticated()
    session.set_token("abc")
    assert session.get_token() == "abc"
    session.clear()
    assert session.get_token() is None


def test_file_session_round_trip(tmp_path):
    path = tmp_path / "nested" / "session.json"
    FileSessionProvider(path).set_token("abc")
    assert FileSessionProvider(path).get_token() == "abc"
    # Only the final file remains, no temp leftovers
    assert [p.name for p in path.parent.iterdir()] == ["session.json"]

    FileSessionProvider(path).clear()
    assert not path.exists()
    assert FileSessionProvider(path).get_token() is None


def test_corrupt_session_file_reads_as_signed_out(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json")
    assert FileSessionProvider(path).get_token() is None


def test_claims_are_read_without_the_secret():
    token = jwt.encode({"sub": "7", "role": "PROVIDER", "email": "bruno@eventura.io"}, "server-only-secret", algorithm="HS256")
    assert decode_claims(token)["role"] == "PROVIDER"
    caller = caller_from_token(token)
    assert caller.id == 7
    assert caller.role == UserRole.PROVIDER
    assert caller.account_status is None


def test_garbage_token():
    with pytest.raises(InvalidToken):
        decode_claims("not-a-jwt")
    token = jwt.encode({"sub": "7"}, "k", algorithm="HS256")
    with pytest.raises(InvalidToken):
        caller_from_token(token)


def test_page_params_are_checked_locally():
    assert page_params(2, 5, "createdAt,desc") == {"page": 2, "size": 5, "sort": "createdAt,desc"}
    with pytest.raises(InvalidInput):
        page_params(-1)
    with pytest.raises(InvalidInput):
        page_params(0, 0)


def test_build_payload_uses_wire_names():
    payload = build_payload(PitchCreate, request_id=3, pitch_details="Menu", proposed_price=450)
    assert payload == {"requestId": 3, "pitchDetails": "Menu", "proposedPrice": 450.0}
    with pytest.raises(InvalidInput):
        build_payload(PitchCreate, request_id=3, pitch_details="", proposed_price=450)


def test_pitch_details_are_trimmed_before_validation():
    assert PitchCreate(request_id=3, pitch_details="  Menu  ", proposed_price=450).pitch_details == "Menu"
    with pytest.raises(InvalidInput):
        build_payload(PitchCreate, request_id=3, pitch_details="   ", proposed_price=450)

import pytest

from tools.contract_validation import (
    BASE_MESSAGE,
    CANDIDATE_BODY,
    OFFER_BODY,
    POLL_QUERY,
    validate_contract,
    validate_contract_with_error_response,
)


def test_offer_body_session_id_is_optional():
    validate_contract(OFFER_BODY, {"sdp": "O1"})
    validate_contract(OFFER_BODY, {"sessionId": None, "sdp": "O1"})


def test_missing_field_is_reported():
    is_valid, response = validate_contract_with_error_response(OFFER_BODY, {"sessionId": "abc"})

    assert not is_valid
    assert response == {
        "status": "error",
        "error_type": "InvalidMessage",
        "error": "Missing required field: 'sdp'",
    }


def test_empty_sdp_is_rejected():
    with pytest.raises(TypeError):
        validate_contract(OFFER_BODY, {"sdp": ""})


def test_candidate_may_be_null_but_index_must_be_integer():
    validate_contract(CANDIDATE_BODY, {"sessionId": "abc", "candidate": None})

    with pytest.raises(TypeError):
        validate_contract(CANDIDATE_BODY, {"sessionId": "abc", "candidate": "c", "sdpMLineIndex": True})
    with pytest.raises(TypeError):
        validate_contract(CANDIDATE_BODY, {"sessionId": "abc", "candidate": "c", "sdpMLineIndex": "0"})


def test_role_must_be_known():
    is_valid, response = validate_contract_with_error_response(
        BASE_MESSAGE, {"session_id": "abc", "role": "viewer"}
    )

    assert not is_valid
    assert "publisher" in response["error"]


def test_poll_query_role_is_optional():
    assert validate_contract_with_error_response(POLL_QUERY, {"sessionId": "abc"}) == (True, None)


def test_non_object_message_is_rejected():
    is_valid, response = validate_contract_with_error_response(OFFER_BODY, None)

    assert not is_valid
    assert response["error_type"] == "InvalidMessage"

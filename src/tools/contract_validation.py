class BaseType:

    def __init__(self):
        raise Exception("Cannot instantiate")

    @staticmethod
    def validate():
        raise NotImplementedError("Subclasses should implement this!")


class IntegerType(BaseType):

    @staticmethod
    def validate(value):
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("Value must be an integer.")


class StringType(BaseType):

    @staticmethod
    def validate(value):
        if not isinstance(value, str):
            raise TypeError("Value must be a string.")


class NonEmptyStringType(BaseType):

    @staticmethod
    def validate(value):
        if not isinstance(value, str) or not value:
            raise TypeError("Value must be a non-empty string.")


class EnumType(BaseType):

    def __init__(self, *choices):
        self.choices = choices

    def validate(self, value):
        if value not in self.choices:
            raise TypeError(f"Value must be one of {', '.join(self.choices)}.")


class OptionalType(BaseType):

    def __init__(self, item_type):
        self.item_type = item_type

    def validate(self, value):
        if value is not None:
            self.item_type.validate(value)


ROLE = EnumType("publisher", "subscriber")

PEER_STATE = EnumType(
    "new", "connecting", "connected", "disconnected", "failed", "closed"
)

## HTTP bodies (camelCase, as sent by browser clients)
OFFER_BODY = {
    "sessionId": OptionalType(NonEmptyStringType),
    "sdp": NonEmptyStringType,
}

CANDIDATE_BODY = {
    "sessionId": NonEmptyStringType,
    "candidate": OptionalType(StringType),  # null for end-of-candidates
    "sdpMid": OptionalType(StringType),
    "sdpMLineIndex": OptionalType(IntegerType),
}

STATE_BODY = {
    "sessionId": NonEmptyStringType,
    "state": PEER_STATE,
}

ANSWER_BODY = {
    "sessionId": NonEmptyStringType,
    "sdp": NonEmptyStringType,
}

CLOSE_BODY = {
    "sessionId": NonEmptyStringType,
}

SESSION_QUERY = {
    "sessionId": NonEmptyStringType,
}

POLL_QUERY = {
    "sessionId": NonEmptyStringType,
    "role": OptionalType(ROLE),
}

## Socket.IO messages (snake_case)
BASE_MESSAGE = {
    "session_id": NonEmptyStringType,
    "role": ROLE,
}


def validate_contract(contract, data):
    if not isinstance(data, dict):
        raise TypeError("Message must be an object.")
    for key, value in contract.items():
        if key not in data:
            if isinstance(value, OptionalType):
                continue
            raise KeyError(f"Missing key: {key}")
        if isinstance(value, dict):
            validate_contract(value, data[key])
        else:
            value.validate(data[key])


def validate_contract_with_error_response(contract, data):
    """
    Validate a contract and return an error response if validation fails.

    Args:
        contract: The contract schema to validate against
        data: The data to validate

    Returns:
        tuple: (is_valid: bool, error_response: dict or None)
            - If valid: (True, None)
            - If invalid: (False, error_response_dict with status, error_type and error fields)
    """
    from tools.logger import log_warning

    try:
        validate_contract(contract, data)
        return (True, None)
    except KeyError as e:
        log_warning(f"Contract validation error - missing field: {e}")
        error = f"Missing required field: {str(e)}"
    except TypeError as e:
        log_warning(f"Contract validation error - type mismatch: {e}")
        error = f"Invalid field type: {str(e)}"
    return (
        False,
        {
            "status": "error",
            "error_type": "InvalidMessage",
            "error": error,
        },
    )

from functools import wraps
from tools.logger import log_error, log_warning
from tools.contract_validation import validate_contract_with_error_response
from use_cases.signaling import SignalingError


def signaling_handler(contract, name):
    """
    Decorator for Socket.IO signaling handlers.

    This decorator handles the common pattern:
    1. Validates the message against the contract
    2. Returns an error ack if validation fails
    3. Calls the wrapped handler
    4. Turns SignalingError into an error ack carrying its error_type
    5. Adds the action name to every ack

    Args:
        contract: The contract schema to validate against
        name: The topic name (used for the action field of the ack)

    Returns:
        Decorator function
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(sid, message, *args, **kwargs):
            is_valid, error_response = validate_contract_with_error_response(
                contract, message
            )
            if not is_valid:
                error_response["action"] = name
                return error_response

            try:
                response = await func(sid, message, *args, **kwargs)
            except SignalingError as e:
                log_warning(f"{name} rejected: {e}")
                response = e.to_response()
            except Exception as e:
                log_error(f"Error handling {name}: {e}")
                response = {
                    "status": "error",
                    "error_type": "SignalingError",
                    "error": str(e),
                }

            response["action"] = name
            return response

        return wrapper

    return decorator

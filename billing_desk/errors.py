from httpx import Response


class BillingError(Exception):
    """Base class for every error surfaced to the user as a notice."""


class ApiError(BillingError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @classmethod
    def from_response(cls, response: Response) -> "ApiError":
        message = _response_message(response)
        error_cls = NotFoundError if response.status_code == 404 else cls
        return error_cls(message, status_code=response.status_code)


class NotFoundError(ApiError):
    pass


class MalformedResponse(ApiError):
    """The server answered, but a record could not be read."""


class ValidationFailed(BillingError):
    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(errors.values()))
        self.errors = errors


class DuplicateEntryError(BillingError):
    pass


class TransitionNotAllowed(BillingError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot change status from {current} to {target}")
        self.current = current
        self.target = target


class PaymentDeclined(BillingError):
    """Raised by a payment confirmer when the processor rejects the charge."""


def _response_message(response: Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]

    text = response.text.strip()
    return text or response.reason_phrase or f"Request failed with status {response.status_code}"


def looks_structured(message: str) -> bool:
    stripped = message.strip()
    return stripped.startswith(("{", "[")) or '":' in stripped


def friendly_delete_message(error: BillingError, fallback: str) -> str:
    message = str(error)
    lowered = message.lower()

    if isinstance(error, NotFoundError) or "not found" in lowered or "404" in lowered:
        return "This entry no longer exists. It may have already been deleted."

    if message and not looks_structured(message):
        return message

    return fallback

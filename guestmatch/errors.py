"""Error taxonomy for the guest match client.

Validation errors stop at the capture adapter. Everything else ends up in the
orchestrator's error state, where ``kind`` selects the message shown to the guest.
"""


class GuestMatchError(Exception):
    kind = "unknown"
    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail


# --- Capture / selection ---

class ValidationError(GuestMatchError):
    kind = "validation"


class NotAnImage(ValidationError):
    user_message = "Please select an image file."


class TooLarge(ValidationError):
    def __init__(self, limit_mib: int, size_bytes: int | None = None):
        self.limit_mib = limit_mib
        self.size_bytes = size_bytes
        self.user_message = f"File size must be less than {limit_mib}MB."
        super().__init__(f"payload of {size_bytes} bytes exceeds {limit_mib} MiB")


class DeviceUnavailable(ValidationError):
    user_message = "Camera is unavailable. You can still upload a photo instead."


# --- Backend payloads ---

class NormalizationError(GuestMatchError):
    kind = "normalization"
    user_message = "We couldn't read the results from the server. Please try again."


class NotAList(NormalizationError):
    pass


class InvalidEntry(NormalizationError):
    def __init__(self, index: int, detail: str = ""):
        self.index = index
        super().__init__(f"match entry {index} is malformed: {detail}")


# --- Network / job lifecycle ---

class TransportError(GuestMatchError):
    kind = "transport"
    user_message = "Could not reach the server. Check your connection and try again."

    def __init__(self, detail: str = "", status_code: int | None = None):
        super().__init__(detail)
        self.status_code = status_code


class PollingTimeoutError(GuestMatchError):
    kind = "timeout"
    user_message = "Matching is taking longer than expected. Please try again in a moment."

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"no result after {attempts} status checks")


class JobFailedError(GuestMatchError):
    kind = "job_failed"
    user_message = "The server could not process your selfie. Please try another photo."

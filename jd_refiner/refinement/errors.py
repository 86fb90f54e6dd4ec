"""Error taxonomy for refinement requests."""

from typing import Optional


class RefinementError(Exception):
    """
    Base error for a failed refinement request.

    ``message`` is the short user-facing error; ``details`` carries the
    technical reason for diagnostics. ``status_code`` is the HTTP equivalent.
    """

    status_code = 500
    default_message = "Failed to refine job description"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message if details is None else f"{self.message}: {details}")

    def to_payload(self) -> dict:
        payload = {"success": False, "error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInputError(RefinementError):
    """Missing document/ledger, or nothing actionable under the strict gate."""

    status_code = 400
    default_message = "Invalid refinement request"


class UpstreamError(RefinementError):
    """The completion service did not produce a usable document."""

    status_code = 502
    reason = "upstream_failure"


class UpstreamEmptyResponseError(UpstreamError):
    reason = "empty_response"


class UpstreamMalformedJsonError(UpstreamError):
    reason = "malformed_json"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[str] = None,
        raw_content: str = "",
    ):
        super().__init__(message, details)
        self.raw_content = raw_content


class UpstreamFailureError(UpstreamError):
    """Network, rate-limit, authentication or other provider failure."""

    reason = "upstream_failure"


class UpstreamTimeoutError(UpstreamError):
    status_code = 504
    reason = "timeout"


class AccessDeniedError(RefinementError):
    """The caller does not own the analysis they are trying to change."""

    status_code = 403
    default_message = "Not authorized to modify this analysis"


class AuthenticationError(RefinementError):
    """No valid bearer token was presented."""

    status_code = 401
    default_message = "Authentication required"

from enum import Enum


class Supporter360Error(Exception):
    """Base exception for the Supporter 360 pipeline."""

    pass


class ApiErrorKind(str, Enum):
    """Outcome classes of a failed provider API call."""

    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    EXHAUSTED = "exhausted"

    @classmethod
    def from_status(cls, status: int) -> "ApiErrorKind":
        if status == 404:
            return cls.NOT_FOUND
        if status == 429:
            return cls.RATE_LIMITED
        if status >= 500:
            return cls.SERVER_ERROR
        return cls.CLIENT_ERROR

    @property
    def transient(self) -> bool:
        return self in (ApiErrorKind.RATE_LIMITED, ApiErrorKind.SERVER_ERROR)


class ProviderApiError(Supporter360Error):
    """Raised when a provider REST call fails.

    Callers match on ``kind`` rather than inspecting ``status``.
    """

    def __init__(
        self,
        provider: str,
        kind: ApiErrorKind,
        status: int | None = None,
        message: str = "",
        retry_after: float | None = None,
    ):
        self.provider = provider
        self.kind = kind
        self.status = status
        self.retry_after = retry_after
        detail = f": {message}" if message else ""
        super().__init__(f"{provider} API {kind.value} (status={status}){detail}")


class MessageFormatError(Supporter360Error):
    """Raised when a queue message body cannot be parsed into an envelope."""

    pass


class MembershipNotFoundError(Supporter360Error):
    """Raised when a membership update targets a supporter with no membership row."""

    def __init__(self, supporter_id):
        self.supporter_id = supporter_id
        super().__init__(f"No membership for supporter {supporter_id}")

"""Queue message envelope shared by receivers, the poller and processors."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from supporter360.core.exceptions import MessageFormatError


class QueueMessage(BaseModel):
    """``{event, s3Key, payloadId}`` on the wire.

    ``event`` is the provider-native event shape (Shopify: ``{topic, domain,
    payload}``; Mailchimp and Future Ticketing: ``{type, data}``).
    """

    model_config = ConfigDict(populate_by_name=True)

    event: dict[str, Any]
    s3_key: str | None = Field(default=None, alias="s3Key")
    payload_id: str | None = Field(default=None, alias="payloadId")

    def to_body(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_body(cls, body: str | bytes) -> "QueueMessage":
        try:
            return cls.model_validate_json(body)
        except ValidationError as exc:
            raise MessageFormatError(f"Invalid queue message: {exc.error_count()} validation error(s)") from exc

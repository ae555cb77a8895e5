import json

import pytest

from supporter360.core.exceptions import MessageFormatError
from supporter360.webhooks.messages import QueueMessage

pytestmark = pytest.mark.unit


def test_body_uses_wire_names():
    body = json.loads(QueueMessage(event={"type": "click"}, s3_key="mailchimp/k.json", payload_id="p1").to_body())
    assert body == {"event": {"type": "click"}, "s3Key": "mailchimp/k.json", "payloadId": "p1"}


def test_poller_message_has_no_s3_key():
    message = QueueMessage.from_body('{"event": {"type": "order", "data": {"OrderID": 7}}}')
    assert message.s3_key is None
    assert message.event["data"]["OrderID"] == 7


@pytest.mark.parametrize("body", ["", "not json", '{"s3Key": "x"}', '{"event": "string"}'])
def test_malformed_body_raises(body):
    with pytest.raises(MessageFormatError):
        QueueMessage.from_body(body)

import json
from typing import Awaitable, Callable

import pytest
from httpx import Response


@pytest.fixture
def post_webhook(client, sign) -> Callable[..., Awaitable[Response]]:
    """POST a signed Paystack event to the webhook endpoint."""

    async def _post(event: str, data: dict, event_id=None, signature: str = None) -> Response:
        payload = {"event": event, "data": data}
        if event_id is not None:
            payload["id"] = event_id
        body = json.dumps(payload).encode("utf-8")
        return await client.post(
            "/payments/webhooks/paystack",
            content=body,
            headers={
                "content-type": "application/json",
                "x-paystack-signature": signature or sign(body),
            },
        )

    return _post

from api.middleware import LoggingMiddleware


async def _noop_app(scope, receive, send):
    return None


def test_gateway_fields_are_masked():
    middleware = LoggingMiddleware(_noop_app)

    query = middleware._sanitize_data({"Authority": "A0000000001", "Status": "OK"})
    assert query == {"Authority": "***", "Status": "OK"}

    body = middleware._sanitize_data(
        {"merchant_id": "m", "metadata": {"mobile": "0912", "email": "sara@example.com"}, "items": [{"card_pan": "5022"}]}
    )
    assert body == {
        "merchant_id": "***",
        "metadata": {"mobile": "***", "email": "sara@example.com"},
        "items": [{"card_pan": "***"}],
    }

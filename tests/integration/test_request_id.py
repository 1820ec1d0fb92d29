def test_error_request_id_matches_header(client):
    """
    Ensure that the request id returned in the error body
    matches the X-Request-ID response header.
    """
    response = client.get("/v1/entities/not-an-id")
    assert response.status_code == 400

    header_request_id = (
        response.headers.get("x-request-id")
        or response.headers.get("X-Request-ID")
    )
    assert header_request_id is not None

    body = response.json()
    assert body["error"]["request_id"] == header_request_id
    assert body["error"]["code"] == "BAD_REQUEST"
    assert body["error"]["message"] == "Invalid entity ID format"


def test_success_has_request_id_header(client):
    """
    Ensure that successful responses always include X-Request-ID.
    """
    response = client.get("/v1/entities?limit=10")
    assert response.status_code == 200

    header_request_id = (
        response.headers.get("x-request-id")
        or response.headers.get("X-Request-ID")
    )
    assert header_request_id is not None


def test_incoming_request_id_is_echoed(client):
    response = client.get("/v1/entities/not-an-id", headers={"X-Request-ID": "trace-123"})

    assert response.headers["X-Request-ID"] == "trace-123"
    assert response.json()["error"]["request_id"] == "trace-123"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/v1/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"

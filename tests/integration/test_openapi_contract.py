from __future__ import annotations

from typing import Any, Dict

from apps.api.app.error_codes import ErrorCode

_RECOMMENDATION_ERRORS = (401, 403, 404, 500)


def _get(responses: Dict[str, Any], status_code: int) -> Dict[str, Any]:
    key = str(status_code)
    assert key in responses, f"OpenAPI missing response for {status_code}"
    return responses[key]


def test_openapi_contains_error_responses_for_recommendations(api_app) -> None:
    spec = api_app.openapi()

    path_item = spec["paths"]["/v1/recommendations"]
    op = path_item["get"]

    responses = op["responses"]

    for status_code in _RECOMMENDATION_ERRORS:
        _get(responses, status_code)


def test_openapi_error_examples_shape_and_codes(api_app) -> None:
    spec = api_app.openapi()

    op = spec["paths"]["/v1/recommendations"]["get"]
    responses = op["responses"]

    allowed = {e.value for e in ErrorCode}

    for status_code in _RECOMMENDATION_ERRORS:
        r = _get(responses, status_code)

        content = r.get("content", {})
        assert "application/json" in content, f"{status_code} missing application/json"

        example = content["application/json"].get("example")
        assert example is not None, f"{status_code} missing example"

        # Validate error envelope shape
        assert "error" in example, f"{status_code} example missing 'error'"
        err = example["error"]

        assert "code" in err, f"{status_code} example missing error.code"
        assert "message" in err, f"{status_code} example missing error.message"
        assert "request_id" in err, f"{status_code} example missing error.request_id"

        # Validate code is part of official ErrorCode enum
        assert err["code"] in allowed, (
            f"{status_code} invalid error.code: {err['code']}"
        )


def test_openapi_lists_core_catalog_paths(api_app) -> None:
    paths = api_app.openapi()["paths"]

    for path in (
        "/v1/entities",
        "/v1/entities/{entity_id}/rating",
        "/v1/reviews",
        "/v1/admin/jobs/auto-verification",
        "/v1/auth/signin",
    ):
        assert path in paths, f"OpenAPI missing {path}"

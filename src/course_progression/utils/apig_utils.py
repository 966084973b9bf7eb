import base64
import enum
import json
import logging
import re
import typing
import urllib.parse

from course_progression.utils.base_types import LearnerId

_LOGGER = logging.getLogger(__name__)


PathParams = typing.NewType("PathParams", dict[str, str])
QueryParams = typing.NewType("QueryParams", dict[str, str])


class ErrorCode(enum.Enum):
    """
    API error codes with their HTTP status and default client-facing message.
    """

    VALIDATION_ERROR = (400, "Invalid request.")
    AUTHENTICATION_FAILED = (401, "User identification failed.")
    RESOURCE_NOT_FOUND = (404, "Resource not found or method not allowed.")
    CONFLICT = (409, "Request conflicts with the current progress state.")
    INTERNAL_ERROR = (500, "An unexpected error occurred.")
    STORE_UNAVAILABLE = (503, "Progress storage is temporarily unavailable.")

    @property
    def status_code(self) -> int:
        return self.value[0]

    @property
    def default_message(self) -> str:
        return self.value[1]


def get_event_body(event: dict) -> bytes:
    if "isBase64Encoded" in event and event["isBase64Encoded"]:
        return base64.b64decode(event["body"])
    else:
        return event["body"].encode("utf-8")


def get_method(event: dict) -> str:
    return event.get("requestContext", {}).get("http", {}).get("method", "UNKNOWN")


def get_path(event: dict) -> str:
    return event.get("requestContext", {}).get("http", {}).get("path", "")


def get_query_string_parameters(event: dict) -> QueryParams:
    return event.get("queryStringParameters") or {}


def get_pagination_limit(query_params: typing.Optional[QueryParams]) -> int:
    limit = 50
    if query_params and "limit" in query_params:
        try:
            limit = int(query_params["limit"])
        except (ValueError, TypeError):
            _LOGGER.warning(f"Invalid limit query param: {query_params.get('limit')}")
    return limit


def get_last_evaluated_key(query_params: typing.Optional[QueryParams]) -> typing.Optional[dict[str, typing.Any]]:
    if not query_params:
        return None

    if "lastEvaluatedKey" in query_params:
        try:
            return json.loads(query_params["lastEvaluatedKey"])
        except json.JSONDecodeError:
            _LOGGER.warning("Invalid lastEvaluatedKey query param.")

    return None


def get_learner_id_from_event(event: dict[str, typing.Any]) -> typing.Optional[LearnerId]:
    """
    Extracts the learner ID from the Lambda event context provided by the custom Lambda Authorizer.
    The authorizer places the decoded JWT payload into the 'lambda' key.
    """
    try:
        learner_id = event.get("requestContext", {}).get("authorizer", {}).get("lambda", {}).get("sub")
        if learner_id:
            return LearnerId(str(learner_id))

        _LOGGER.warning("Learner ID ('sub') not found in authorizer's lambda context.")
        return None
    except Exception as e:
        _LOGGER.error("Error extracting learner_id from event: %s", str(e))
        return None


def match_path(pattern: str, path: str) -> typing.Optional[PathParams]:
    """
    Matches a request path against a route pattern such as "/courses/{courseId}/progress".

    Captured values are percent-decoded, so ids containing ":", "+" or "#" come back as stored.

    :returns: The captured path parameters, or None if the path does not match.
    """
    regex = "^" + re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", pattern) + "/?$"
    match = re.match(regex, path)
    if not match:
        return None
    return PathParams({name: urllib.parse.unquote(value) for name, value in match.groupdict().items()})


def get_allowed_origin(event: dict[str, typing.Any]) -> str:
    """
    Validates the Origin header against allowed patterns and returns it if valid.

    Allowed Origins:
    - localhost/127.0.0.1 (any port) - for local development
    - *.github.io - for GitHub Pages deployments

    :returns: The origin if valid, otherwise "null" (which causes browser to deny the response)
    """
    origin = (event.get("headers") or {}).get("origin", "")

    # No origin header present (e.g., curl/Postman testing, direct API calls)
    if not origin:
        return "*"

    if origin.startswith("http://localhost:") or origin.startswith("http://127.0.0.1:"):
        return origin

    allowed_patterns = [r"^https://.*\.github\.io$"]
    for pattern in allowed_patterns:
        if re.match(pattern, origin):
            return origin

    _LOGGER.warning(f"Origin not in allowed patterns: {origin}")
    return "null"


def format_lambda_response(
    status_code: int,
    body: typing.Any,
    *,
    event: typing.Optional[dict[str, typing.Any]] = None,
    additional_headers: typing.Optional[dict[str, str]] = None,
) -> dict[str, typing.Any]:
    """
    Formats API Gateway proxy responses with CORS headers.
    """
    allowed_origin = get_allowed_origin(event) if event else "*"

    headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": allowed_origin,
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Amz-Date,X-Api-Key,X-Amz-Security-Token",
        "Access-Control-Allow-Methods": "OPTIONS,GET,PUT,POST,DELETE",
    }
    if additional_headers:
        headers.update(additional_headers)

    return {
        "statusCode": status_code,
        "headers": headers,
        "body": json.dumps(body) if body is not None else None,
    }


def create_error_response(
    error_code: ErrorCode,
    message: typing.Optional[str] = None,
    *,
    details: typing.Any = None,
    event: typing.Optional[dict[str, typing.Any]] = None,
) -> dict[str, typing.Any]:
    """
    Builds an error response body of the form {"errorCode", "message", "details"?}.
    """
    body: dict[str, typing.Any] = {
        "errorCode": error_code.name,
        "message": message or error_code.default_message,
    }
    if details is not None:
        body["details"] = details
    return format_lambda_response(error_code.status_code, body, event=event)

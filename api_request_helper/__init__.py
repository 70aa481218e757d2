"""arh: HTTP request helper for enveloped JSON APIs."""

__version__ = "0.1.0"

from api_request_helper.config import HelperConfig, create_api_token, verify_api_token
from api_request_helper.content_type import ContentType
from api_request_helper.errors import (
    ApiRequestError,
    ClassifiedServiceError,
    DecodeError,
    RequestTimeoutError,
    ServiceException,
    StatusStreamClosedError,
    TransportError,
)
from api_request_helper.functions import STATUS_EXCEPTIONS, SUCCESS_CODES, get_exception, get_response
from api_request_helper.helper import ApiRequestHelper
from api_request_helper.status import StatusStream, Subscription

__all__ = [
    "STATUS_EXCEPTIONS",
    "SUCCESS_CODES",
    "ApiRequestError",
    "ApiRequestHelper",
    "ClassifiedServiceError",
    "ContentType",
    "DecodeError",
    "HelperConfig",
    "RequestTimeoutError",
    "ServiceException",
    "StatusStream",
    "StatusStreamClosedError",
    "Subscription",
    "TransportError",
    "create_api_token",
    "get_exception",
    "get_response",
    "verify_api_token",
]

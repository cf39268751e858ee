"""Advisory routing of an analyzed request.

Confidently-classified support and training requests are redirected away from
the change form; everything else, including every change request, goes
straight to the form. The user can always override a redirect.
"""
from enum import Enum

from intake.schemas import RequestType

REDIRECT_CONFIDENCE_THRESHOLD = 0.7


class RouteTarget(str, Enum):
    FORM = "FORM"
    SUPPORT_REDIRECT = "SUPPORT_REDIRECT"
    TRAINING_REDIRECT = "TRAINING_REDIRECT"


def route(request_type: RequestType | str, confidence: float) -> RouteTarget:
    """Map request type and confidence to a route. Threshold is strictly greater-than."""
    value = request_type.value if isinstance(request_type, RequestType) else str(request_type).lower()
    if value == RequestType.SUPPORT.value and confidence > REDIRECT_CONFIDENCE_THRESHOLD:
        return RouteTarget.SUPPORT_REDIRECT
    if value == RequestType.TRAINING.value and confidence > REDIRECT_CONFIDENCE_THRESHOLD:
        return RouteTarget.TRAINING_REDIRECT
    return RouteTarget.FORM

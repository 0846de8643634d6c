from rest_framework import status
from rest_framework.exceptions import APIException


class RentalError(APIException):
    """Base class for every error the reservation core raises."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Reservation request failed."
    default_code = "rental_error"


class ValidationError(RentalError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "validation_error"


class NotFoundError(RentalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class PermissionDenied(RentalError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action."
    default_code = "permission_denied"


class ConflictError(RentalError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This vehicle is already booked for the selected time."
    default_code = "conflict"


class AlreadyResolvedError(ConflictError):
    default_detail = "This payment has already been verified."
    default_code = "already_resolved"


class InvalidTransitionError(RentalError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid status transition."
    default_code = "invalid_transition"

    def __init__(self, current=None, target=None, detail=None):
        if detail is None and current is not None:
            detail = f"Invalid status transition from '{current}' to '{target}'."
        self.current = current
        self.target = target
        super().__init__(detail)


class InvalidStateError(InvalidTransitionError):
    default_detail = "Invalid operation for the current reservation state."
    default_code = "invalid_state"


def rental_exception_handler(exc, context):
    """DRF's handler, plus a machine-readable ``code`` on reservation errors."""
    # rest_framework.views loads the authentication classes, which import this module
    from rest_framework.views import exception_handler

    response = exception_handler(exc, context)
    if response is not None and isinstance(exc, RentalError):
        detail = exc.detail
        code = detail.code if hasattr(detail, 'code') else exc.default_code
        response.data = {'detail': detail, 'code': code}
    return response

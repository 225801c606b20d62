"""
Core — Exception Handling

Domain exceptions raised by the lot ledger services, plus the DRF
exception handler the surrounding HTTP layer plugs in for consistent
error envelopes.

@file core/exceptions.py
"""

import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('manchengo')


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class BusinessRuleViolation(APIException):
    """Raised when a business rule is violated at the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Business rule violation.'
    default_code = 'BUSINESS_RULE_VIOLATION'


class InvalidArgument(BusinessRuleViolation):
    """Non-positive quantities, negative recounts, unknown lot kinds."""
    default_detail = 'Invalid argument.'
    default_code = 'INVALID_ARGUMENT'


class InsufficientStockError(APIException):
    """
    Raised when eligible stock cannot cover a consumption request.

    Carries the figures the caller needs to decide whether to retry with
    expired lots unblocked.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock for this operation.'
    default_code = 'INSUFFICIENT_STOCK'

    def __init__(self, detail=None, code=None, *, available_stock=0,
                 quantity_needed=0, expired_lot_count=0):
        super().__init__(detail=detail, code=code)
        self.available_stock = available_stock
        self.quantity_needed = quantity_needed
        self.expired_lot_count = expired_lot_count


class DuplicateResourceError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'DUPLICATE_RESOURCE'


class LotNumberConflict(DuplicateResourceError):
    """Lot number still collided after the bounded number of retries."""
    default_detail = 'Could not allocate a unique lot number.'
    default_code = 'LOT_NUMBER_CONFLICT'


class ConcurrentModification(APIException):
    """Optimistic-lock failure: the lot row changed since it was read."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Lot was modified concurrently. Retry the operation.'
    default_code = 'CONCURRENT_MODIFICATION'


class ResourceNotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'
    default_code = 'RESOURCE_NOT_FOUND'


class LotNotFound(ResourceNotFoundError):
    default_detail = 'Lot not found.'
    default_code = 'LOT_NOT_FOUND'


# ---------------------------------------------------------------------------
# Standard exception handler
# ---------------------------------------------------------------------------

def standard_exception_handler(exc, context):
    """
    Wraps every error response in the standard envelope:
      { "success": false, "errors": {...}, "code": "ERROR_CODE" }
    """
    if isinstance(exc, Http404):
        exc = ResourceNotFoundError()
    elif isinstance(exc, PermissionDenied):
        exc = APIException(detail='Permission denied.', code='PERMISSION_DENIED')
        exc.status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, ValidationError):
        data = {
            'success': False,
            'errors': exc.message_dict if hasattr(exc, 'message_dict') else {'detail': exc.messages},
            'code': 'VALIDATION_ERROR',
        }
        return Response(data, status=status.HTTP_400_BAD_REQUEST)

    response = exception_handler(exc, context)

    if response is not None:
        errors = {}
        code = getattr(exc, 'default_code', 'ERROR')

        if isinstance(response.data, dict):
            errors = response.data
        elif isinstance(response.data, list):
            errors = {'detail': response.data}
        else:
            errors = {'detail': [str(response.data)]}

        if isinstance(exc, InsufficientStockError):
            errors = {
                **errors,
                'available_stock': exc.available_stock,
                'quantity_needed': exc.quantity_needed,
                'expired_lot_count': exc.expired_lot_count,
            }

        response.data = {
            'success': False,
            'errors': errors,
            'code': code,
        }

    if response is None:
        logger.exception('Unhandled exception in view: %s', exc)
        return Response(
            {'success': False, 'errors': {'detail': ['Internal server error.']}, 'code': 'INTERNAL_ERROR'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return response

"""
Promocode API views for the Storefront platform.
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, throttle_classes
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle

from .serializers import PromocodeValidateInputSerializer
from .services import PromocodeService

logger = logging.getLogger(__name__)


class PromocodeValidateThrottle(UserRateThrottle):
    """Throttling for promocode guessing"""
    scope = 'promocode_validate'


@api_view(['POST'])
@throttle_classes([PromocodeValidateThrottle])
def validate_promocode(request: Request) -> Response:
    """
    Preview a promocode for the current user without redeeming it.
    Returns the discount the code would give on ``order_amount``.
    """
    input_serializer = PromocodeValidateInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return Response({
            'error': 'Invalid input',
            'details': input_serializer.errors
        }, status=status.HTTP_400_BAD_REQUEST)

    data = input_serializer.validated_data
    result = PromocodeService.preview(data['code'], data['order_amount'], request.user)

    if result.is_err():
        error = result.error
        logger.info(f"🎟️ [Promocode] Preview rejected for user {request.user.pk}: {error.code}")
        return Response({'valid': False, **error.to_dict()}, status=error.http_status)

    return Response(result.unwrap().to_dict())

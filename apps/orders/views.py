"""
Order API Views for the Storefront platform
Checkout, order history and staff status management.
"""

import logging
import uuid

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle

from apps.common.idempotency import idempotent
from apps.common.permissions import IsStaffAdmin
from apps.common.types import BusinessError

from .serializers import (
    OrderCreateInputSerializer,
    OrderDetailSerializer,
    OrderListSerializer,
    OrderStatusUpdateSerializer,
)
from .services import OrderCreateData, OrderQueryService, OrderService, StatusChangeData

logger = logging.getLogger(__name__)


# 🔒 SECURITY: Custom throttle classes for order endpoints
class OrderCreateThrottle(UserRateThrottle):
    """Throttling for order creation endpoints"""
    scope = 'order_create'


class OrderListThrottle(UserRateThrottle):
    """Throttling for order listing endpoints"""
    scope = 'order_list'


def error_response(error: BusinessError) -> Response:
    return Response(error.to_dict(), status=error.http_status)


@api_view(['POST'])
@throttle_classes([OrderCreateThrottle])
@idempotent
def create_order(request: Request) -> Response:
    """
    Place an order from the submitted lines.
    Requires an Idempotency-Key header; a retry replays the first success.
    """
    input_serializer = OrderCreateInputSerializer(data=request.data)
    if not input_serializer.is_valid():
        return Response({
            'error': 'Invalid input',
            'details': input_serializer.errors
        }, status=status.HTTP_400_BAD_REQUEST)

    validated_data = input_serializer.validated_data
    logger.info(f"🛒 [Orders API] Checkout request from user {request.user.pk}")

    result = OrderService.create_order(request.user, OrderCreateData(**validated_data))
    if result.is_err():
        return error_response(result.error)

    order = result.unwrap()
    return Response({
        'success': True,
        'order': OrderDetailSerializer(order).data,
    }, status=status.HTTP_200_OK)


@api_view(['GET'])
@throttle_classes([OrderListThrottle])
def order_list(request: Request) -> Response:
    """Own orders for customers, every order for administrators."""
    orders = OrderQueryService.get_orders_for_user(request.user, request.query_params.get('status'))
    serializer = OrderListSerializer(orders, many=True)
    return Response({
        'results': serializer.data,
        'count': len(serializer.data)
    })


@api_view(['GET'])
def order_detail(request: Request, order_id: uuid.UUID) -> Response:
    result = OrderQueryService.get_order_with_items(order_id, request.user)
    if result.is_err():
        return error_response(result.error)
    return Response(OrderDetailSerializer(result.unwrap()).data)


@api_view(['PUT'])
@permission_classes([IsStaffAdmin])
def update_order_status(request: Request, order_id: uuid.UUID) -> Response:
    """
    Staff-only lifecycle change. Completing an order credits its cashback.
    """
    input_serializer = OrderStatusUpdateSerializer(data=request.data)
    if not input_serializer.is_valid():
        return Response({
            'error': 'Invalid input',
            'details': input_serializer.errors
        }, status=status.HTTP_400_BAD_REQUEST)

    result = OrderService.update_order_status(
        order_id,
        StatusChangeData(
            new_status=input_serializer.validated_data['status'],
            notes=input_serializer.validated_data['notes'],
            changed_by=request.user,
        ),
    )
    if result.is_err():
        return error_response(result.error)

    return Response({
        'success': True,
        'order': OrderDetailSerializer(result.unwrap()).data,
    })

"""
Order API Serializers for the Storefront platform
"""

from decimal import Decimal

from rest_framework import serializers

from .models import Order, OrderItem, OrderStatusHistory


class OrderItemSerializer(serializers.ModelSerializer):
    """Order item with pricing snapshot for API responses"""

    product_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product_id', 'product_name', 'unit_price', 'quantity', 'line_total']


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ['old_status', 'new_status', 'notes', 'is_automatic', 'created_at']


class OrderListSerializer(serializers.ModelSerializer):
    """Slim order info for order history"""

    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'status_display', 'payment_status',
            'total', 'created_at'
        ]


class OrderDetailSerializer(serializers.ModelSerializer):
    """Full order details with items and financial breakdown"""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'status_display', 'payment_status',
            'subtotal', 'discount_amount', 'bonuses_used', 'bonuses_earned',
            'delivery_cost', 'total', 'promocode_code',
            'delivery_service', 'delivery_type', 'delivery_point_code',
            'delivery_address', 'delivery_tracking_number',
            'payment_method', 'payment_reference',
            'created_at', 'paid_at', 'shipped_at', 'delivered_at', 'completed_at', 'cancelled_at',
            'items', 'status_history'
        ]


# Input Serializers for Order Creation and Status Changes

class OrderItemInputSerializer(serializers.Serializer):
    """A submitted line: product, the price the client saw, quantity"""

    product_id = serializers.UUIDField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    quantity = serializers.IntegerField(min_value=1, max_value=1000)


class OrderCreateInputSerializer(serializers.Serializer):
    """Input serializer for order creation"""

    items = OrderItemInputSerializer(many=True, allow_empty=False)
    promocode = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    bonuses_used = serializers.IntegerField(min_value=0, required=False, default=0)
    delivery_service = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    delivery_type = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    delivery_point_code = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    delivery_address = serializers.JSONField(required=False, default=dict)
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice for choice, _label in Order.STATUS_CHOICES])
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')

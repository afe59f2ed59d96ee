"""
Promocode API serializers.
"""

from decimal import Decimal

from rest_framework import serializers


class PromocodeValidateInputSerializer(serializers.Serializer):
    """Input for previewing a promocode against an order amount"""

    code = serializers.CharField(max_length=50, trim_whitespace=True)
    order_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))

"""
Checkout and order lifecycle errors.
"""

from typing import Any

from apps.common.types import BusinessError


class ConflictingDiscounts(BusinessError):
    code = 'conflicting_discounts'
    default_message = 'A promocode and bonuses cannot be used together, choose one'


class BonusLimitExceeded(BusinessError):
    code = 'bonus_limit_exceeded'

    def __init__(self, max_usable: int):
        super().__init__(f'You can use at most {max_usable} bonuses', max_usable=max_usable)


class InsufficientBonusBalance(BusinessError):
    code = 'insufficient_bonus'

    def __init__(self, available: int, requested: int):
        super().__init__(
            f'Not enough bonuses: {available} available, {requested} requested',
            available=available,
            requested=requested,
        )


class ProductNotFound(BusinessError):
    code = 'product_not_found'
    http_status = 404

    def __init__(self, product_id: Any):
        super().__init__(f'Product {product_id} not found', product_id=str(product_id))


class InsufficientStock(BusinessError):
    code = 'insufficient_stock'

    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f'Not enough "{product_name}" in stock: {available} available, {requested} requested',
            product_name=product_name,
            available=available,
            requested=requested,
        )


class PriceChanged(BusinessError):
    code = 'price_changed'

    def __init__(self, product_name: str, submitted: Any, current: Any):
        super().__init__(
            f'Price of "{product_name}" has changed, please review your cart',
            product_name=product_name,
            submitted_price=str(submitted),
            current_price=str(current),
        )


class OrderNotFound(BusinessError):
    code = 'order_not_found'
    http_status = 404
    default_message = 'Order not found'


class InvalidStatusTransition(BusinessError):
    code = 'invalid_status_transition'

    def __init__(self, old_status: str, new_status: str):
        super().__init__(
            f'Invalid status transition from {old_status} to {new_status}',
            old_status=old_status,
            new_status=new_status,
        )


class OrderCreationFailed(BusinessError):
    """Unexpected infrastructure failure; details stay in the logs"""
    code = 'order_creation_failed'
    http_status = 500
    default_message = 'Failed to create order'


class OrderUpdateFailed(BusinessError):
    code = 'order_update_failed'
    http_status = 500
    default_message = 'Failed to update order'

"""
Promocode validation errors, in the order the checks run.
"""

from apps.common.types import BusinessError


class PromocodeError(BusinessError):
    """Base class for every reason a promocode cannot be applied"""
    code = 'promocode_invalid'


class PromocodeNotFound(PromocodeError):
    code = 'promocode_not_found'
    default_message = 'Promocode not found'


class PromocodeInactive(PromocodeError):
    code = 'promocode_inactive'
    default_message = 'Promocode is deactivated'


class PromocodeExpired(PromocodeError):
    code = 'promocode_expired'
    default_message = 'Promocode has expired'


class PromocodeMinAmountNotMet(PromocodeError):
    code = 'promocode_min_amount_not_met'

    def __init__(self, min_order_amount: object):
        super().__init__(
            f'Minimum order amount for this promocode is {min_order_amount}',
            min_order_amount=str(min_order_amount),
        )


class PromocodeAlreadyUsed(PromocodeError):
    code = 'promocode_already_used'
    default_message = 'You have already used this promocode'

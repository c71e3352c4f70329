"""Business-rule errors raised by model operations.

All of them are ValueErrors carrying a message that is safe to show to the
user as-is.
"""


class ValidationFailed(ValueError):
    pass


class InsufficientEmptiesBalance(ValueError):
    def __init__(self, customer_name, balance, required):
        super().__init__(
            f'Insufficient empties balance for {customer_name}: '
            f'balance {balance}, required {required}'
        )
        self.balance = balance
        self.required = required


class InsufficientStock(ValueError):
    def __init__(self, product_name, available, requested):
        super().__init__(
            f'Insufficient stock for {product_name}: available {available}, requested {requested}'
        )
        self.available = available
        self.requested = requested


class InsufficientEmpties(ValueError):
    def __init__(self, product_name, available, requested):
        super().__init__(
            f'Not enough empty crates of {product_name} on the ground: '
            f'available {available}, requested {requested}'
        )
        self.available = available
        self.requested = requested


class InvalidStatusTransition(ValueError):
    def __init__(self, record, current, target):
        super().__init__(f'{record} is {current} and cannot be {target}')
        self.current = current
        self.target = target

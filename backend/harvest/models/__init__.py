from .enums import InvoiceStatus, PaymentMethod, CreditType
from .customers import Customer
from .orders import Product, Order, OrderItem
from .billing import Invoice, Payment, Credit

__all__ = [
    'InvoiceStatus', 'PaymentMethod', 'CreditType',
    'Customer',
    'Product', 'Order', 'OrderItem',
    'Invoice', 'Payment', 'Credit',
]

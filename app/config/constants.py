# app/config/constants.py

# ========== ORDERS ==========
ORDER_PENDING = 'pending'
ORDER_CONFIRMED = 'confirmed'
ORDER_SHIPPED = 'shipped'
ORDER_DELIVERED = 'delivered'
ORDER_CANCELLED = 'cancelled'
ORDER_REFUNDED = 'refunded'

ORDER_STATUSES = [
    ORDER_PENDING,
    ORDER_CONFIRMED,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
    ORDER_REFUNDED,
]

# Statuses an order never leaves
TERMINAL_ORDER_STATUSES = {ORDER_DELIVERED, ORDER_CANCELLED, ORDER_REFUNDED}

ITEM_STATUSES = [
    ORDER_PENDING,
    ORDER_CONFIRMED,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
]

# ========== PAYMENTS ==========
PAYMENT_PENDING = 'pending'
PAYMENT_PROCESSING = 'processing'  # order axis only
PAYMENT_COMPLETED = 'completed'
PAYMENT_FAILED = 'failed'
PAYMENT_REFUNDED = 'refunded'

TERMINAL_PAYMENT_STATUSES = {PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_REFUNDED}

METHOD_MOBILE_MONEY = 'mobile_money'
METHOD_MTN = 'mtn_mobile'
METHOD_AIRTEL = 'airtel_money'
METHOD_CARD = 'card'
METHOD_COD = 'cash_on_delivery'

PAYMENT_METHODS = [
    METHOD_MOBILE_MONEY,
    METHOD_MTN,
    METHOD_AIRTEL,
    METHOD_CARD,
    METHOD_COD,
]

PROVIDER_MTN = 'MTN_UGANDA'
PROVIDER_AIRTEL = 'AIRTEL_UGANDA'

# ========== USERS ==========
ROLE_BUYER = 'buyer'
ROLE_FARMER = 'farmer'
ROLE_ADMIN = 'admin'

# ========== NOTIFICATIONS ==========
NOTIFICATION_TITLES = {
    'order_placed': 'New Order Received',
    'order_confirmed': 'Order Confirmed',
    'order_shipped': 'Order Shipped',
    'order_delivered': 'Order Delivered',
    'order_cancelled': 'Order Cancelled',
    'payment_received': 'Payment Successful',
    'payment_failed': 'Payment Failed',
    'refund_requested': 'Refund Requested',
    'refund_processed': 'Refund Processed',
}

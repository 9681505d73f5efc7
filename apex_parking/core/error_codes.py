class ErrorCode:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    PAYMENT_ERROR = "PAYMENT_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

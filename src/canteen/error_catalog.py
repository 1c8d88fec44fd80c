"""
Centralized catalog of the controlled errors raised by the canteen services.
Served read-only at ``/api/errors/catalog``.
"""

ERROR_CATALOG = {
    # Validation
    "VALIDATION_ERROR": {
        "title": "Invalid Request",
        "description": "The request body or query parameters failed validation.",
        "http_code": 422,
        "solution": "Fix the fields listed in details and resend.",
    },
    "INVALID_DATE": {
        "title": "Invalid Date",
        "description": "Dates must use the YYYY-MM-DD format.",
        "http_code": 422,
        "solution": "Send the dining date as YYYY-MM-DD.",
    },
    "INVALID_MEAL_TYPE": {
        "title": "Unsupported Meal Type",
        "description": "Meal type must be breakfast, lunch or dinner.",
        "http_code": 422,
        "solution": "Use one of the supported meal types.",
    },
    "EMPTY_MEMBERS": {
        "title": "No Members",
        "description": "A booking needs at least one member.",
        "http_code": 422,
        "solution": "Select at least one department member.",
    },
    "DUPLICATE_MEMBERS": {
        "title": "Duplicate Members",
        "description": "The same user appears more than once in one booking.",
        "http_code": 422,
        "solution": "Remove the repeated ids listed in details.",
    },
    "MEMBER_NOT_IN_ORDER": {
        "title": "Member Not In Order",
        "description": "The user whose meal should be confirmed is not listed in the order.",
        "http_code": 422,
        "solution": "Pick a member of the order.",
    },
    # Authorization
    "AUTH_REQUIRED": {
        "title": "Authentication Required",
        "description": "No valid bearer token was presented.",
        "http_code": 401,
        "solution": "Sign in again and resend the request.",
    },
    "AUTHORIZATION_ERROR": {
        "title": "Access Denied",
        "description": "The actor is not allowed to perform this operation.",
        "http_code": 403,
        "solution": "Ask a department or system administrator.",
    },
    "INSUFFICIENT_PERMISSIONS": {
        "title": "Role Required",
        "description": "The operation needs the dept_admin or sys_admin role and an active account.",
        "http_code": 403,
        "solution": "Request elevated privileges from a system administrator.",
    },
    "ORDER_ACCESS_DENIED": {
        "title": "Order Not Found Or Not Permitted",
        "description": "The order does not exist for this actor, or the actor is neither registrant nor member.",
        "http_code": 403,
        "solution": "Check the order id and the signed-in account.",
    },
    # Not found
    "NOT_FOUND": {
        "title": "Resource Not Found",
        "description": "The requested resource does not exist.",
        "http_code": 404,
        "solution": "Verify the identifier.",
    },
    "ORDER_NOT_FOUND": {
        "title": "Order Not Found",
        "description": "No order exists with the given id.",
        "http_code": 404,
        "solution": "Refresh the order list.",
    },
    "USER_NOT_FOUND": {
        "title": "User Not Found",
        "description": "One or more user ids do not resolve to an active user.",
        "http_code": 404,
        "solution": "Remove the missing ids listed in details.",
    },
    "DEPARTMENT_NOT_FOUND": {
        "title": "Department Not Found",
        "description": "The department id does not exist.",
        "http_code": 404,
        "solution": "Verify the department id.",
    },
    "QR_CODE_INVALID": {
        "title": "Invalid QR Code",
        "description": "The scanned code is unknown or has been deactivated.",
        "http_code": 404,
        "solution": "Scan the code displayed at the canteen entrance.",
    },
    "NOT_REGISTERED": {
        "title": "Not Registered",
        "description": "The user has no booking for the current meal.",
        "http_code": 404,
        "solution": "Ask the department administrator to book the meal.",
    },
    # Business rules
    "BUSINESS_ERROR": {
        "title": "Business Rule Violation",
        "description": "The request breaks a dining rule.",
        "http_code": 400,
        "solution": "Read the message for the rule that failed.",
    },
    "MEMBER_NOT_IN_DEPARTMENT": {
        "title": "Member Outside Department",
        "description": "Some members do not belong to the booking department.",
        "http_code": 400,
        "solution": "Only book members of your own department.",
    },
    "ORDER_CANCELLED": {
        "title": "Order Cancelled",
        "description": "A cancelled order cannot be confirmed.",
        "http_code": 400,
        "solution": "Create a new booking.",
    },
    "ORDER_ALREADY_DINED": {
        "title": "Meal Already Consumed",
        "description": "An order confirmed as dined can no longer be cancelled.",
        "http_code": 400,
        "solution": "No action possible.",
    },
    "OUTSIDE_DINING_TIME": {
        "title": "Outside Dining Time",
        "description": "Today's meal can only be confirmed inside its time window.",
        "http_code": 400,
        "solution": "Confirm during the window named in the message.",
    },
    "FUTURE_CONFIRMATION": {
        "title": "Meal Not Yet Served",
        "description": "Orders for a future date cannot be confirmed.",
        "http_code": 400,
        "solution": "Confirm on the dining date.",
    },
    "CANCEL_DEADLINE_PASSED": {
        "title": "Cancellation Deadline Passed",
        "description": "Bookings can only be cancelled before the deadline on the previous day.",
        "http_code": 400,
        "solution": "Contact the canteen administrator.",
    },
    "PAST_DINING_DATE": {
        "title": "Past Dining Date",
        "description": "Meals cannot be booked for a date in the past.",
        "http_code": 400,
        "solution": "Pick today or a later date.",
    },
    # Conflicts
    "CONFLICT": {
        "title": "Conflict",
        "description": "The resource changed state concurrently.",
        "http_code": 409,
        "solution": "Reload and retry.",
    },
    "DOUBLE_BOOKING": {
        "title": "Already Booked",
        "description": "Some members already hold a booking for this date and meal.",
        "http_code": 409,
        "solution": "Remove the members listed in details.",
    },
    "ORDER_ALREADY_CONFIRMED": {
        "title": "Already Confirmed",
        "description": "The meal of this order has already been confirmed.",
        "http_code": 409,
        "solution": "No action needed.",
    },
    "ORDER_ALREADY_CANCELLED": {
        "title": "Already Cancelled",
        "description": "The order has already been cancelled.",
        "http_code": 409,
        "solution": "No action needed.",
    },
    # System
    "DATABASE_ERROR": {
        "title": "Database Error",
        "description": "The database rejected or failed the operation.",
        "http_code": 500,
        "solution": "Check the server logs.",
    },
    "SYSTEM_001": {
        "title": "Internal Error",
        "description": "Unhandled server exception (bug or infrastructure failure).",
        "http_code": 500,
        "solution": "Check the server logs.",
    },
}

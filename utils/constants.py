"""
Application-wide constants.
Centralizes magic numbers and fixed notification copy.
"""

# Validation limits
MAX_REQUEST_BODY_SIZE = 1024 * 1024  # 1MB

# Listing
BOOKINGS_LIST_LIMIT = 100

# Notification copy
REFUND_TIMELINE_TEXT = (
    " A refund has been initiated and should appear in your account "
    "within 5-10 business days."
)
BUSINESS_REFUND_TEXT = " Refund has been processed."
DEFAULT_SENDER_NAME = "Business"

# Internal service header used for server-to-server refund calls
INTERNAL_SERVICE_HEADER = "x-internal-service"

# Backend messages stay in English; presentation layers localise by key.
ERROR_MAP: dict[str, str] = {
    "Unauthorized": "unauthorized",
    "User not found.": "userNotFound",
    "User not found": "userNotFound",
    "You cannot ban yourself.": "cannotBanSelf",
    "You cannot message yourself.": "cannotMessageSelf",
    "You must be logged in to perform this action.": "mustBeLoggedIn",
    "Access Denied: Your account has been suspended.": "accountSuspended",
    "Please configure your payment account in the Dashboard before selling.": "configureStripe",
    "Product not found": "productNotFound",
    "You are not authorized to edit this product": "notAuthorizedToEdit",
    "Conversation not found": "conversationNotFound",
    "Notification not found": "notificationNotFound",
    "The cart is empty.": "cartEmpty",
    "Payment session already recorded": "duplicateTransaction",
    "The seller has not configured their payments.": "sellerStripeNotConfigured",
    "Purchase required": "purchaseRequired",
    "Email already in use": "emailTaken",
    "Please check the form fields.": "checkFormFields",
    "Server error.": "serverError",
}

FALLBACK_KEY = "genericError"


def error_key(message: str) -> str:
    """
    Translation key for an error message.

    Exact match first, then the first known pattern contained in the message
    (messages with dynamic parts), then the generic fallback.
    """
    if message in ERROR_MAP:
        return ERROR_MAP[message]

    for pattern, key in ERROR_MAP.items():
        if pattern in message:
            return key

    return FALLBACK_KEY

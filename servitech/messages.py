"""User-facing message strings."""

LOGGED_IN = "User logged in successfully."
LOGGED_OUT = "User logged out successfully."
ALREADY_LOGGED_OUT = "User already logged out."
REGISTERED = "User registered successfully"
INFO_RETRIEVED = "User information obtained successfully."
INFO_UPDATED = "User information updated successfully."
PASSWORD_UPDATED = "User password updated successfully."
UNAUTHENTICATED = "Unauthenticated."
FORBIDDEN = "The user does not have the appropriate roles."
VALIDATION_FAILED = "The given data was invalid."

USER_NOT_FOUND = "We can't find a user with that email address."
WRONG_PASSWORD = "The provided password is incorrect."
EMAIL_TAKEN = "The email has already been taken."
OLD_PASSWORD_MISMATCH = "The old password is incorrect."

RESET_LINK_SENT = "We have emailed your password reset link."
RESET_LINK_NOT_SENT = "We couldn't send the password reset link. Please try again."
PASSWORD_RESET = "Your password has been reset."
RESET_TOKEN_INVALID = "This password reset token is invalid."
RESET_TOKEN_EXPIRED = "This password reset token has expired. Please request a new one."
RESET_FAILED = "We couldn't reset the password. Please try again."

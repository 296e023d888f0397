"""
Standardized API messages.
All user-facing strings go through Babel so they can be translated.
"""

from flask_babel import lazy_gettext as _

# Generic
ERROR_NOT_FOUND = _("%(item)s not found.")
ERROR_INVALID_INPUT = _("Invalid input provided.")
ERROR_LOGIN_REQUIRED = _("Authentication required.")
ERROR_INTERNAL = _("Internal server error.")
ERROR_REQUIRED_FIELDS = _("All fields are required.")
ERROR_PRIVILEGES = _("You do not have the required privileges to access this resource.")

# Auth
AUTH_INVALID_CREDENTIALS = _("Invalid email or password.")
AUTH_EMAIL_TAKEN = _("An account with this email already exists.")
AUTH_USERNAME_TAKEN = _("This username is already taken.")
AUTH_LOGOUT_SUCCESS = _("You have been logged out.")

# Ledger
LEDGER_SUBMISSION_FAILED = _("Could not submit transaction, please retry.")
LEDGER_REVERTED = _("The transaction was rejected: %(reason)s")
LEDGER_NO_ACTIVE_ACCESS = _("No active access to revoke.")
LEDGER_WALLET_NOT_OWNED = _("This wallet address is not linked to your account.")
LEDGER_WALLET_TAKEN = _("This wallet address is linked to another account.")
LEDGER_INVALID_ADDRESS = _("Invalid %(field)s.")
LEDGER_REGISTERED = _("User registered on blockchain successfully")
LEDGER_ACCESS_GRANTED = _("Access granted on blockchain successfully")
LEDGER_ACCESS_REVOKED = _("Access revoked on blockchain successfully")
LEDGER_PAYMENT_SENT = _("Payment sent on blockchain successfully")

# Permissions
PERMISSION_INVALID_TRANSITION = _("This permission cannot change to the requested status.")

# Earnings
EARNINGS_CALC_INVALID = _("Platforms array and hours are required")

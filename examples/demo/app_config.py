import logging

from auth_token_validation import AuthExtension, AuthTokenValidator, ValidatorSettings

logging.basicConfig(level=logging.INFO)

# Reads AUTH_* variables, loading .env first
SETTINGS = ValidatorSettings.from_env()

# one validator (and key cache) per issuer, shared by every request thread
validator = AuthTokenValidator.from_settings(SETTINGS)
# auth will be the ext imported in the Flask app
auth = AuthExtension(validator)

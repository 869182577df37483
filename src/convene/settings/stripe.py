from decouple import config

DEFAULT_CURRENCY = config("DEFAULT_CURRENCY", "EUR")
STRIPE_SECRET_KEY = config("STRIPE_SECRET_KEY", default="sk_test_...")
STRIPE_PUBLISHABLE_KEY = config("STRIPE_PUBLISHABLE_KEY", default="pk_test_...")
STRIPE_WEBHOOK_SECRET = config("STRIPE_WEBHOOK_SECRET", default="whsec_...")
# Note: Stripe requires at least 30 minutes for checkout session expiry
PAYMENT_DEFAULT_EXPIRY_MINUTES = config("PAYMENT_DEFAULT_EXPIRY_MINUTES", cast=int, default=45)
# Delayed methods (bank transfers) settle days after checkout completes; their rows are kept pending that long.
PAYMENT_ASYNC_SETTLEMENT_DAYS = config("PAYMENT_ASYNC_SETTLEMENT_DAYS", cast=int, default=14)

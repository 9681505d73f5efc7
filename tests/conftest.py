import os

# Settings and the default engine are read at import time.
os.environ.update(
    {
        "DATABASE_URL": "sqlite://",
        "ENABLE_SCHEDULER": "false",
        "STRIPE_SECRET_KEY": "",
        "STRIPE_WEBHOOK_SECRET": "",
        "TWILIO_ACCOUNT_SID": "",
        "TWILIO_AUTH_TOKEN": "",
        "EMAIL_WEBHOOK_SECRET": "",
        "CRON_SECRET": "",
        "MAX_DAILY_SPOTS": "4",
        "DAILY_RATE_CENTS": "2000",
        "CHECKOUT_HOUR": "12",
        "LOT_TIMEZONE": "America/New_York",
        "PARTNER_SMS_NUMBER": "+12058523087",
    }
)

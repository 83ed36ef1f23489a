import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./integration_vault.db")

# Field-level encryption key for stored provider credentials: 64 hex chars (32 bytes).
# Generate with: python -c "import secrets; print(secrets.token_hex(32))"
# No random fallback: encryption.get_field_cipher() refuses to start without it.
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")

# Signing key for tenant bearer tokens
SECRET_KEY = os.getenv("SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Public base URL the providers call us on (used to rebuild the exact URL Twilio signed).
# When unset the request URL as seen by the app is used.
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")

# WhatsApp Cloud API
WHATSAPP_GRAPH_URL = os.getenv("WHATSAPP_GRAPH_URL", "https://graph.facebook.com/v18.0")
# Optional process-wide verify token; when unset, the verifyToken of every active
# WhatsApp configuration is accepted for the subscription handshake
WHATSAPP_VERIFY_TOKEN = os.getenv("WHATSAPP_VERIFY_TOKEN")
# Optional app secret; when set, POST deliveries must carry a valid X-Hub-Signature-256
WHATSAPP_APP_SECRET = os.getenv("WHATSAPP_APP_SECRET")

# Twilio
TWILIO_API_URL = os.getenv("TWILIO_API_URL", "https://api.twilio.com/2010-04-01")
# Process-wide fallback when a routed tenant has no readable authToken
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")

# Stripe
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_WEBHOOK_TOLERANCE = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300"))

# Outbound provider HTTP timeout (seconds)
PROVIDER_HTTP_TIMEOUT = float(os.getenv("PROVIDER_HTTP_TIMEOUT", "10.0"))

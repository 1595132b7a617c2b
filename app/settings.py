import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
resources_ms_url = os.environ.get("RESOURCES_MS_URL", "http://localhost:8002")
internal_service_key = os.environ.get("INTERNAL_SERVICE_KEY", "")
resource_lookup_timeout = float(os.environ.get("RESOURCE_LOOKUP_TIMEOUT", "3.0"))
default_currency = os.environ.get("DEFAULT_CURRENCY", "EUR")
cancellation_policy = os.environ.get("CANCELLATION_POLICY")  # JSON list of tiers
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
SLOTS_TTL = int(os.environ.get("SLOTS_TTL", "60"))  # seconds

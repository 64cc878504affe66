"""Server-wide constants."""

PROJECT_NAME = "CapGate"
API_V1_STR = "/api/v1"
API_VERSION = "0.1.0"
SCHEMA_VERSION = "v1"

CALLER_IDENTITY_HEADER = "X-Caller-Identity"
REQUEST_ID_HEADER = "X-Request-ID"

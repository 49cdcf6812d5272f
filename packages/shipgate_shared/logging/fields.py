"""Canonical structured-log field names."""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Correlation.
TRACE_ID = "trace_id"
ENVELOPE_ID = "envelope_id"
SOURCE = "source"
PRINCIPAL = "principal"

# Portal access.
TENANT_ID = "tenant_id"
CREDENTIAL_ID = "credential_id"
SHIPMENT_ID = "shipment_id"
USER_ID = "user_id"
CLIENT_ADDRESS = "client_address"

# Public API invocation.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_CATEGORY = "error_category"
STAGE = "stage"
CONCERN = "concern"

SERVICE = "service"
ENVIRONMENT = "environment"

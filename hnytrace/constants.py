DEFAULT_API_ENDPOINT = "https://api.honeycomb.io"
DEFAULT_DATASET = "opentelemetry"
DEFAULT_TIMEOUT = 30.0

# https://docs.honeycomb.io/api/events/#limits
MAX_EVENT_SIZE = 102_400
MAX_BATCH_SIZE = 5_242_880
MAX_VALUE_SIZE = 49_127

DEFAULT_BATCH_SIZE = 100
DEFAULT_SAMPLE_RATE = 1

TEAM_HEADER = "X-Honeycomb-Team"
USER_AGENT_PRODUCT = "hnytrace"
BATCH_PATH = "/1/batch/"

SPAN_EVENT_TYPE = "span_event"

# Derived event attributes and the dataset attribute names they map to by default.
# https://docs.honeycomb.io/working-with-your-data/managing-your-data/definitions/#tracing
DEFAULT_ATTRIBUTE_NAMES = {
    "duration_ms": "duration_ms",
    "name": "name",
    "parent_span_id": "trace.parent_id",
    "span_id": "trace.span_id",
    "span_kind": "trace.span_kind",
    "span_type": "meta.span_type",
    "trace_id": "trace.trace_id",
}

# Consistent sampling on trace ids
SAMPLING_HASH_MODULO = (1 << 64) - 1
SAMPLING_KNUTH_FACTOR = 1111111111111111111

"""Internal constants shared across the library."""

DEFAULT_URL = "wss://steemit.com/wspa"

DEFAULT_API_IDS: dict[str, int] = {
    "database_api": 0,
    "login_api": 1,
    "network_broadcast_api": 2,
    "follow_api": 3,
}

#: Bootstrap call used to resolve an API name to the id the node assigned it.
API_LOOKUP_API = "login_api"
API_LOOKUP_METHOD = "get_api_by_name"

RPC_METHOD = "call"

MAX_IN_FLIGHT = 10
ADMISSION_INTERVAL = 0.1
STREAM_INTERVAL = 0.2

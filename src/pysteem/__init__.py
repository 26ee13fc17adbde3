"""pysteem - Async Python client for the Steem node WebSocket JSON-RPC API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pysteem")
except PackageNotFoundError:
    __version__ = "0+local"

from pysteem._subscription import Subscription
from pysteem.callbacks import with_callback
from pysteem.client import SteemClient
from pysteem.config import SteemConfig
from pysteem.exceptions import (
    SteemConfigError,
    SteemError,
    SteemMismatchedResponseError,
    SteemProtocolError,
    SteemResponseDroppedError,
    SteemResponseError,
    SteemStaleResponseError,
    SteemStreamError,
    SteemTimeoutError,
    SteemTransportError,
)
from pysteem.models import (
    BlockHeader,
    DynamicGlobalProperties,
    MethodDescriptor,
    Operation,
    SignedBlock,
    Transaction,
)
from pysteem.streams import (
    BlockFetcher,
    BlockNumberWatcher,
    OperationSplitter,
    TransactionSplitter,
    iterate,
)

__all__ = [
    "__version__",
    "BlockFetcher",
    "BlockHeader",
    "BlockNumberWatcher",
    "DynamicGlobalProperties",
    "MethodDescriptor",
    "Operation",
    "OperationSplitter",
    "SignedBlock",
    "SteemClient",
    "SteemConfig",
    "SteemConfigError",
    "SteemError",
    "SteemMismatchedResponseError",
    "SteemProtocolError",
    "SteemResponseDroppedError",
    "SteemResponseError",
    "SteemStaleResponseError",
    "SteemStreamError",
    "SteemTimeoutError",
    "SteemTransportError",
    "Subscription",
    "Transaction",
    "TransactionSplitter",
    "iterate",
    "with_callback",
]

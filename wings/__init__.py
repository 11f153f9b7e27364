"""Wings: persistent share-request queue with pluggable, linkable endpoints.

v0.5.0:
  - Crash-safe SQLite queue with at-most-once checkout per row
  - Persisted multi-step link flows (survive restarts)
  - Per-endpoint link state bus with replay on subscribe
  - Single-flight background dispatcher with per-destination notifications
  - Facebook, Dropbox and Cloud Print endpoint profiles
"""

__version__ = "0.5.0"
__description__ = "Persistent share-request queue with pluggable, linkable endpoints"

from wings.config import WingsConfig
from wings.core.wings import Wings
from wings.endpoints import Endpoint, LinkError
from wings.models import EndpointKind, LinkEvent, LinkStepResult, ShareNotification

__all__ = [
    "Endpoint",
    "EndpointKind",
    "LinkError",
    "LinkEvent",
    "LinkStepResult",
    "ShareNotification",
    "Wings",
    "WingsConfig",
    "__version__",
]

"""stratlive - State reconciliation and connection health for live strategy dashboards."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("stratlive")
except PackageNotFoundError:
    __version__ = "0+local"
from stratlive.client import DashboardClient
from stratlive.config import DashboardConfig
from stratlive.exceptions import (
    CommandDispatchError,
    MalformedSnapshotError,
    StaleFeedError,
    StratLiveConfigError,
    StratLiveError,
    StratLiveTransportError,
)
from stratlive.models import (
    CommandResult,
    ConnectionHealth,
    EngineSettings,
    FieldClass,
    HeartbeatRecord,
    Notification,
    Severity,
    StrategySnapshot,
    TransportEvent,
)
from stratlive.state.events import (
    HealthChanged,
    HeartbeatReceived,
    NotificationsChanged,
    SettingsChanged,
    StateCommitted,
    Subscription,
)
from stratlive.state.store import AppliedState

__all__ = [
    "__version__",
    "AppliedState",
    "CommandDispatchError",
    "CommandResult",
    "ConnectionHealth",
    "DashboardClient",
    "DashboardConfig",
    "EngineSettings",
    "FieldClass",
    "HealthChanged",
    "HeartbeatReceived",
    "HeartbeatRecord",
    "MalformedSnapshotError",
    "Notification",
    "NotificationsChanged",
    "SettingsChanged",
    "Severity",
    "StaleFeedError",
    "StateCommitted",
    "StratLiveConfigError",
    "StratLiveError",
    "StratLiveTransportError",
    "StrategySnapshot",
    "Subscription",
    "TransportEvent",
]

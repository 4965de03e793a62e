"""Internal constants shared across the library."""

USER_AGENT = "stratlive/1"
DEFAULT_TOPIC_PREFIX = "strategy"
SNAPSHOT_SCHEMA_VERSION = 1

# ------------------------------------------------------------------
# Change detection tolerances
# ------------------------------------------------------------------

#: Absolute delta a ``Regular`` numeric field must exceed to count as a change.
REGULAR_TOLERANCE = 0.001
#: Absolute delta a ``HighTolerance`` numeric field must exceed to count as a change.
HIGH_TOLERANCE = 0.02

# ------------------------------------------------------------------
# Smoothing pipeline delays
# ------------------------------------------------------------------

SETTLE_DELAY_SECONDS = 0.075
DEBOUNCE_DELAY_SECONDS = 0.025

# ------------------------------------------------------------------
# Staleness monitor
# ------------------------------------------------------------------

STALENESS_CHECK_INTERVAL_SECONDS = 60.0
STALENESS_SOFT_THRESHOLD_SECONDS = 60.0
STALENESS_HARD_THRESHOLD_SECONDS = 120.0

# ------------------------------------------------------------------
# Notification queue
# ------------------------------------------------------------------

NOTIFICATION_CAPACITY = 5
NOTIFICATION_LIFETIME_SECONDS = 5.0

# ------------------------------------------------------------------
# Transport
# ------------------------------------------------------------------

MQTT_PORT = 1883
MQTT_KEEPALIVE_SECONDS = 60
# 1 s first retry, capped at 5 s.
RECONNECT_MIN_DELAY_SECONDS = 1
RECONNECT_MAX_DELAY_SECONDS = 5
COMMAND_TIMEOUT_SECONDS = 10.0

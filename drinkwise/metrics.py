from prometheus_client import Counter
# Prometheus metrics definitions

# Sessions opened through the API
sessions_started_total = Counter(
    "sessions_started_total", "Total drinking sessions started"
)

# reason: manual | inactivity
sessions_ended_total = Counter(
    "sessions_ended_total", "Total drinking sessions ended", ["reason"]
)

drinks_logged_total = Counter(
    "drinks_logged_total", "Total drinks logged"
)

# Version-guarded transitions that lost a race or were not allowed
session_conflicts_total = Counter(
    "session_conflicts_total", "Rejected session state transitions"
)

__all__ = [
    "sessions_started_total",
    "sessions_ended_total",
    "drinks_logged_total",
    "session_conflicts_total",
]

from enum import Enum


class ClassStatus(str, Enum):
    scheduled = "scheduled"
    live = "live"
    completed = "completed"
    deleted = "deleted"


class Bucket(str, Enum):
    """Display category computed by the lifecycle classifier."""

    live = "live"
    upcoming = "upcoming"
    completed = "completed"
    deleted = "deleted"


class LifecycleEvent(str, Enum):
    START = "START"
    AUTO_START = "AUTO_START"
    END = "END"
    AUTO_END = "AUTO_END"
    DELETE = "DELETE"
    RECOVER = "RECOVER"
    PURGE = "PURGE"


class ImportTargetStatus(str, Enum):
    """Statuses a bulk import may assign to new rows."""

    scheduled = "scheduled"
    live = "live"
    completed = "completed"

"""
Base models and enumerations shared by Snapline models.
"""

import enum
import secrets
from datetime import UTC, datetime


def generate_credential_secret() -> str:
    """Generate a fresh 32-byte credential secret as a hex string."""
    return secrets.token_hex(32)


def utcnow() -> datetime:
    """Timezone-aware current time used for ``created_at`` columns."""
    return datetime.now(UTC)


class InstanceState(str, enum.Enum):
    """Runtime states reported for a managed instance."""

    running = "running"
    starting = "starting"
    stopped = "stopped"
    suspended = "suspended"


class OwnerType(str, enum.Enum):
    """Kind of entity owning a snapshot."""

    instance = "instance"
    device = "device"


class SnapshotAction(str, enum.Enum):
    """How a pipeline stage obtains the snapshot it deploys downstream."""

    USE_LATEST_SNAPSHOT = "use_latest_snapshot"
    CREATE_SNAPSHOT = "create_snapshot"
    PROMPT = "prompt"
    USE_ACTIVE_SNAPSHOT = "use_active_snapshot"

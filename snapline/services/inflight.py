"""Process-wide tracking of in-flight operations on instances."""

from uuid import UUID

from snapline.exceptions.domain import DeployInProgressError

IMPORTING = "importing"


class InflightStateTracker:
    """In-flight and in-deploy markers for instances.

    Markers are process local. ``mark`` checks and sets without awaiting, so
    two coroutines cannot both acquire the same instance.
    """

    def __init__(self) -> None:
        self._inflight: dict[UUID, str] = {}
        self._deploying: set[UUID] = set()

    def get(self, instance_id: UUID) -> str | None:
        return self._inflight.get(instance_id)

    def is_deploying(self, instance_id: UUID) -> bool:
        return instance_id in self._deploying

    def ensure_idle(self, instance_id: UUID) -> None:
        """Raise if the instance already has an operation in flight.

        Raises:
            DeployInProgressError: If an in-flight state is recorded
        """
        state = self._inflight.get(instance_id)
        if state is not None:
            raise DeployInProgressError(
                f"Instance {instance_id} is busy: operation '{state}' is in progress"
            )

    def mark(self, instance_id: UUID, state: str = IMPORTING, deploying: bool = False) -> None:
        """Record an in-flight state, rejecting a second operation.

        Raises:
            DeployInProgressError: If an in-flight state is already recorded
        """
        self.ensure_idle(instance_id)
        self._inflight[instance_id] = state
        if deploying:
            self._deploying.add(instance_id)

    def clear(self, instance_id: UUID) -> None:
        self._inflight.pop(instance_id, None)
        self._deploying.discard(instance_id)

    def reset(self) -> None:
        """Forget all markers."""
        self._inflight.clear()
        self._deploying.clear()


inflight_tracker = InflightStateTracker()

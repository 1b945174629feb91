"""
Job Hydrator - turns a stored payload back into a live job.

Used when retrying a failed job and when a recurring definition comes due.
Every problem (no name, unknown name, factory blows up, factory returns the
wrong thing, rebuilt job can't serialize) comes out as a RetryHydrationError
so the caller can log it and move on.
"""

from typing import Any, Dict, Optional

from jobqueue.exceptions import RetryHydrationError
from jobqueue.job_types import Queueable
from jobqueue.registry import JobTypeRegistry, default_registry


class JobHydrator:
    """Rebuild Queueable instances through a JobTypeRegistry."""

    def __init__(self, registry: Optional[JobTypeRegistry] = None):
        self.registry = registry if registry is not None else default_registry

    def hydrate(self, payload: Dict[str, Any]) -> Queueable:
        """
        Rebuild a job from its to_dict() payload.

        The rebuilt job must serialize again, so a half-restored instance
        never reaches the store.

        Raises:
            RetryHydrationError: payload is malformed or its type can't be resolved
        """
        if not isinstance(payload, dict):
            raise RetryHydrationError(f"Payload is not a map: {type(payload).__name__}")

        name = payload.get("name")
        if not name or not isinstance(name, str):
            raise RetryHydrationError("Payload has no job name")

        factory = self.registry.get(name)
        if factory is None:
            raise RetryHydrationError(f"Job type '{name}' is not registered")

        # Factories are user code: anything they raise is a hydration failure
        try:
            job = factory(payload)
        except Exception as e:
            raise RetryHydrationError(f"Could not rebuild job '{name}': {e}") from e

        if not isinstance(job, Queueable):
            raise RetryHydrationError(
                f"Factory for '{name}' returned {type(job).__name__}, not a Queueable"
            )

        try:
            rebuilt = job.to_dict()
        except Exception as e:
            raise RetryHydrationError(f"Rebuilt job '{name}' cannot serialize: {e}") from e
        if not isinstance(rebuilt, dict):
            raise RetryHydrationError(f"Rebuilt job '{name}' did not serialize to a map")
        return job

"""
Job Type Registry - maps logical job names to the factories that rebuild them.

A stored payload only carries a logical name ("send_welcome_mail"), never a
class path. Reviving a job means looking that name up here; unregistered
names are rejected instead of being imported or guessed at.

Usage:
    from jobqueue.registry import register_job_type, default_registry

    @register_job_type
    class SendWelcomeMail(QueueableJob):
        job_name = "send_welcome_mail"
        ...

    # Or with an explicit name / plain factory
    default_registry.register(lambda data: SendWelcomeMail.from_dict(data),
                              name="welcome_legacy")

    factory = default_registry.resolve("send_welcome_mail")
    job = factory(payload)
"""

import inspect
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from jobqueue.exceptions import ConfigurationError, UnknownJobTypeError
from jobqueue.job_types import Queueable

logger = logging.getLogger("job_registry")

JobFactory = Callable[[Dict[str, Any]], Queueable]


def _validate_job_class(cls: type) -> None:
    """Raise if a class can't act as a job payload type."""
    if not issubclass(cls, Queueable):
        raise ConfigurationError(f"{cls.__name__} does not implement Queueable")
    if inspect.isabstract(cls):
        missing = ", ".join(sorted(cls.__abstractmethods__))
        raise ConfigurationError(f"{cls.__name__} is abstract (missing: {missing})")


def _name_for(cls: type) -> str:
    return getattr(cls, "job_name", None) or cls.__name__


class JobTypeRegistry:
    """
    Logical name -> factory mapping.

    Factories take the payload map produced by Queueable.to_dict() and
    return a live Queueable. Registering a class stores its from_dict.
    """

    def __init__(self):
        self._factories: Dict[str, JobFactory] = {}
        self._targets: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(
        self,
        target: Union[type, JobFactory, None] = None,
        name: Optional[str] = None,
    ):
        """
        Register a job class or factory.

        Works as a plain call, a bare decorator, or a decorator with a name:

            registry.register(MyJob)
            @registry.register
            @registry.register(name="my_job")

        Raises:
            ConfigurationError: target is not a usable job type, has no name,
                or the name is already taken by something else
        """
        if target is None:
            return lambda t: self.register(t, name=name)

        if isinstance(target, type):
            _validate_job_class(target)
            job_name = name or _name_for(target)
            factory: JobFactory = target.from_dict
        elif callable(target):
            if not name:
                raise ConfigurationError("A factory function needs an explicit job name")
            job_name = name
            factory = target
        else:
            raise ConfigurationError(f"Cannot register {target!r} as a job type")

        with self._lock:
            existing = self._targets.get(job_name)
            if existing is not None and existing is not target:
                raise ConfigurationError(f"Job type '{job_name}' is already registered")
            self._factories[job_name] = factory
            self._targets[job_name] = target

        logger.debug(f"Registered job type '{job_name}'")
        return target

    def unregister(self, name: str) -> bool:
        with self._lock:
            self._targets.pop(name, None)
            return self._factories.pop(name, None) is not None

    def get(self, name: str) -> Optional[JobFactory]:
        return self._factories.get(name)

    def resolve(self, name: str) -> JobFactory:
        """
        Get the factory for a name.

        Raises:
            UnknownJobTypeError: nothing is registered under that name
        """
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownJobTypeError(
                f"Unknown job type: '{name}'. Registered: {', '.join(self.names()) or 'none'}"
            )
        return factory

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)


default_registry = JobTypeRegistry()


def register_job_type(target=None, name: Optional[str] = None):
    """Decorator registering a job class with the default registry."""
    return default_registry.register(target, name=name)

"""
Lazy service container for the lead pipeline.

app.services maps a name ('lead', 'gemini', 'automation', ...) to either a
ready object or a factory. A factory's declared dependencies are resolved by
name first and handed to it as keyword arguments, so the repositories are
built before the services that use them.
"""
from dataclasses import dataclass, field
from typing import Dict, Any, Callable, Optional, Set, List
from enum import Enum
import threading
import logging

logger = logging.getLogger(__name__)


class ServiceLifecycle(Enum):
    SINGLETON = "singleton"  # built once per app
    TRANSIENT = "transient"  # built on every get()
    SCOPED = "scoped"        # built once per scope id


@dataclass
class _Registration:
    name: str
    factory: Optional[Callable] = None
    instance: Any = None
    lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON
    dependencies: List[str] = field(default_factory=list)
    build_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def is_prebuilt(self) -> bool:
        return self.factory is None


class ServiceRegistryEnhanced:
    """
    Name-based resolution for routes, Celery tasks and CLI commands.

    Tests replace a collaborator with register(name, service=mock) or patch
    the object get() returns.
    """

    def __init__(self):
        self._registrations: Dict[str, _Registration] = {}
        self._scopes: Dict[str, Dict[str, Any]] = {}
        self._resolving = threading.local()
        self._lock = threading.RLock()

    def register(self, name: str, service: Any = None, factory: Callable = None,
                 lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
                 dependencies: Optional[List[str]] = None) -> None:
        """
        Bind name to an object or a factory, replacing any earlier binding.

        Raises:
            ValueError: If neither service nor factory is given
        """
        if service is None and factory is None:
            raise ValueError(f"Either service instance or factory must be provided for '{name}'")

        registration = _Registration(name=name, factory=factory, instance=service,
                                     lifecycle=lifecycle, dependencies=list(dependencies or []))
        with self._lock:
            self._registrations[name] = registration
            self._forget_scoped(name)

    def register_factory(self, name: str, factory: Callable,
                         lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
                         dependencies: Optional[List[str]] = None) -> None:
        self.register(name, factory=factory, lifecycle=lifecycle, dependencies=dependencies)

    def has(self, name: str) -> bool:
        return name in self._registrations

    def list_services(self) -> List[str]:
        return sorted(self._registrations)

    def get(self, name: str, scope_id: Optional[str] = None) -> Any:
        """
        Raises:
            ValueError: If name was never registered
            RuntimeError: If resolving name leads back to itself
        """
        registration = self._registrations.get(name)
        if registration is None:
            raise ValueError(f"Service '{name}' is not registered")

        chain = self._chain()
        if name in chain:
            raise RuntimeError(f"Circular dependency detected: {' -> '.join(chain + [name])}")

        if registration.lifecycle is ServiceLifecycle.TRANSIENT:
            return self._build(registration)

        if registration.lifecycle is ServiceLifecycle.SCOPED:
            with self._lock:
                bucket = self._scopes.setdefault(scope_id or "default", {})
                if name not in bucket:
                    bucket[name] = self._build(registration)
                return bucket[name]

        if registration.instance is None:
            with registration.build_lock:
                if registration.instance is None:
                    registration.instance = self._build(registration)
        return registration.instance

    def _chain(self) -> List[str]:
        if not hasattr(self._resolving, 'names'):
            self._resolving.names = []
        return self._resolving.names

    def _build(self, registration: _Registration) -> Any:
        if registration.is_prebuilt:
            raise ValueError(f"No factory registered for '{registration.name}'")

        chain = self._chain()
        chain.append(registration.name)
        try:
            kwargs = {dependency: self.get(dependency) for dependency in registration.dependencies}
            built = registration.factory(**kwargs)
        finally:
            chain.pop()

        logger.debug(f"Built service '{registration.name}'")
        return built

    def _forget_scoped(self, name: str) -> None:
        for bucket in self._scopes.values():
            bucket.pop(name, None)

    def reset_all(self) -> None:
        """Throw away factory-built objects; objects registered ready-made are kept"""
        with self._lock:
            for name, registration in self._registrations.items():
                if not registration.is_prebuilt:
                    registration.instance = None
                self._forget_scoped(name)

    def validate_dependencies(self) -> List[str]:
        return [
            f"Service '{name}' depends on unregistered service '{dependency}'"
            for name, registration in self._registrations.items()
            for dependency in registration.dependencies
            if dependency not in self._registrations
        ]

    def get_initialization_order(self) -> List[str]:
        """
        Every registered name, each placed after the names it depends on.

        Raises:
            RuntimeError: On a dependency cycle
        """
        placed: Set[str] = set()
        order: List[str] = []

        def place(name: str, trail: List[str]):
            if name in trail:
                raise RuntimeError(f"Circular dependency detected: {' -> '.join(trail + [name])}")
            if name in placed:
                return
            registration = self._registrations.get(name)
            for dependency in (registration.dependencies if registration else []):
                place(dependency, trail + [name])
            placed.add(name)
            order.append(name)

        for name in list(self._registrations):
            place(name, [])
        return order


def create_enhanced_registry() -> ServiceRegistryEnhanced:
    return ServiceRegistryEnhanced()

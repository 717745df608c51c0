from __future__ import annotations

import enum
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, Iterator, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Any]


class Lifetime(str, enum.Enum):
    TRANSIENT = "transient"  # новый экземпляр на каждый resolve
    SCOPED = "scoped"  # один экземпляр на запрос
    SINGLETON = "singleton"  # один экземпляр на процесс


class DefinitionKind(str, enum.Enum):
    FACTORY = "factory"  # definition(resolver)
    CONSTRUCTOR = "constructor"  # definition(*resolved_dependencies)


class ContainerError(Exception):
    """Base class for service container failures (programming errors)."""


class ServiceNotFoundError(ContainerError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Service '{name}' not found.")
        self.name = name


class CircularDependencyError(ContainerError):
    def __init__(self, chain: Sequence[str]) -> None:
        super().__init__("Circular dependency: " + " -> ".join(chain))
        self.chain = tuple(chain)


class ScopeError(ContainerError):
    pass


@dataclass(frozen=True)
class Registration:
    name: str
    definition: Any
    kind: DefinitionKind
    lifetime: Lifetime
    dependencies: Tuple[str, ...] = ()


@dataclass
class RequestScope:
    """Holds scoped instances for a single logical request.

    A scope is created by the request middleware and passed explicitly to
    ``ServiceContainer.resolve``. Two requests never share a scope, so two
    concurrent requests never see each other's scoped instances.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    _instances: Dict[str, Any] = field(default_factory=dict, repr=False)
    closed: bool = False

    def get(self, name: str) -> Optional[Any]:
        return self._instances.get(name)

    def set(self, name: str, instance: Any) -> None:
        if self.closed:
            raise ScopeError(f"Request scope {self.id} is closed")
        self._instances[name] = instance

    def __contains__(self, name: str) -> bool:
        return name in self._instances

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        instances = list(self._instances.items())
        self._instances.clear()
        for name, instance in instances:
            closer = getattr(instance, "close", None)
            # асинхронные close (например, у Request) закрывает их владелец
            if not callable(closer) or inspect.iscoroutinefunction(closer):
                continue
            try:
                closer()
            except Exception:
                logger.warning("scope %s: failed to close '%s'", self.id, name, exc_info=True)

    def __enter__(self) -> "RequestScope":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class ServiceContainer:
    """Name-based inversion of control container with lifetime management.

    Services are looked up by name, so a test can swap an implementation for
    a double by registering the same name again.
    """

    def __init__(self) -> None:
        self._services: Dict[str, Registration] = {}
        self._singletons: Dict[str, Any] = {}

    # ---------- registration ----------
    def register(
        self,
        name: str,
        definition: Any,
        dependencies: Sequence[str] = (),
        lifetime: Lifetime = Lifetime.TRANSIENT,
        kind: DefinitionKind = DefinitionKind.CONSTRUCTOR,
    ) -> None:
        if kind is DefinitionKind.FACTORY and dependencies:
            raise ContainerError(f"Factory service '{name}' resolves its own dependencies")
        if name in self._services:
            logger.warning("Service '%s' registered twice; the last registration wins", name)
            self._singletons.pop(name, None)
        logger.debug("Register '%s' (%s, %s)", name, kind.value, lifetime.value)
        self._services[name] = Registration(
            name=name,
            definition=definition,
            kind=kind,
            lifetime=lifetime,
            dependencies=tuple(dependencies),
        )

    def register_singleton(self, name: str, definition: Any, dependencies: Sequence[str] = ()) -> None:
        self.register(name, definition, dependencies, Lifetime.SINGLETON)

    def register_scoped(self, name: str, definition: Any, dependencies: Sequence[str] = ()) -> None:
        self.register(name, definition, dependencies, Lifetime.SCOPED)

    def register_factory(
        self,
        name: str,
        factory: Callable[[Resolver], Any],
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> None:
        self.register(name, factory, lifetime=lifetime, kind=DefinitionKind.FACTORY)

    def register_instance(self, name: str, instance: Any) -> None:
        """Register an already built object as a singleton."""
        self.register_factory(name, lambda _resolve: instance, Lifetime.SINGLETON)

    def names(self) -> Iterator[str]:
        return iter(sorted(self._services))

    # ---------- resolution ----------
    def resolve(self, name: str, scope: Optional[RequestScope] = None) -> Any:
        return self._resolve(name, scope, ())

    def _resolve(self, name: str, scope: Optional[RequestScope], chain: Tuple[str, ...]) -> Any:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Resolving service '%s'", name)
        service = self._services.get(name)
        if service is None:
            raise ServiceNotFoundError(name)
        if name in chain:
            raise CircularDependencyError(chain + (name,))
        chain = chain + (name,)

        if service.lifetime is Lifetime.SINGLETON:
            if name not in self._singletons:
                # синглтон живёт дольше запроса, поэтому scope дальше не передаём
                self._singletons[name] = self._create_instance(service, None, chain)
            return self._singletons[name]

        if service.lifetime is Lifetime.SCOPED:
            if scope is None:
                raise ScopeError(f"Scoped service '{name}' requires a request scope")
            if name not in scope:
                logger.debug("Creating scoped instance of '%s' for scope %s", name, scope.id)
                scope.set(name, self._create_instance(service, scope, chain))
            return scope.get(name)

        return self._create_instance(service, scope, chain)

    def _create_instance(
        self,
        service: Registration,
        scope: Optional[RequestScope],
        chain: Tuple[str, ...],
    ) -> Any:
        if service.kind is DefinitionKind.FACTORY:
            return service.definition(partial(self._resolve, scope=scope, chain=chain))
        args = [self._resolve(dep, scope, chain) for dep in service.dependencies]
        return service.definition(*args)

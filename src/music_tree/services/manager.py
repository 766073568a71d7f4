"""Service manager for registering, ordering and running services."""

import asyncio
import importlib
import inspect
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from ..events.event_bus import EventBus
from ..events.topics import (
    SERVICE_HEALTH_CHECK_FAILED,
    SERVICES_INITIALIZED,
    SERVICES_SHUTDOWN,
    service_topic,
)
from ..exceptions import (
    CircularDependencyError,
    ConfigurationError,
    DependencyError,
    MissingDependencyError,
    ServiceInitializationError,
    ServiceRegistrationError,
)
from ..models.config import ServiceEntry, ServiceManagerConfig
from ..state.store import StateStore

logger = logging.getLogger(__name__)

ServiceName = Union[str, Enum]
ServiceFactory = Callable[[StateStore, EventBus, Dict[str, Any]], Any]


class ServiceStatus(Enum):
    """Lifecycle status of a registered service."""
    REGISTERED = "registered"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    FAILED = "failed"
    SHUTDOWN = "shutdown"


@dataclass
class ServiceDescriptor:
    """A registered service and its runtime status."""
    name: str
    factory: ServiceFactory
    dependencies: List[str] = field(default_factory=list)
    required: bool = True
    auto_start: bool = True
    instance: Any = None
    status: ServiceStatus = ServiceStatus.REGISTERED
    init_time: Optional[float] = None
    last_health_check: Optional[datetime] = None
    error: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "dependencies": list(self.dependencies),
            "required": self.required,
            "auto_start": self.auto_start,
            "init_time": self.init_time,
            "last_health_check": self.last_health_check.isoformat() if self.last_health_check else None,
            "error": str(self.error) if self.error else None,
        }


def service_key(name: ServiceName) -> str:
    """Normalize a service token to its registry key.

    Enum members are keyed by their value, so services can be declared
    with an enum of names instead of bare strings.
    """
    if isinstance(name, Enum):
        name = name.value
    if not isinstance(name, str) or not name:
        raise ServiceRegistrationError(f"Invalid service name: {name!r}")
    return name


def resolve_factory(path: str) -> ServiceFactory:
    """Import a factory given as ``package.module:attribute``.

    Raises:
        ConfigurationError: If the module or attribute cannot be loaded
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Factory must look like 'module:attribute', got '{path}'")

    try:
        target: Any = importlib.import_module(module_name)
        for part in attribute.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Could not load service factory '{path}': {e}") from e

    if not callable(target):
        raise ConfigurationError(f"Service factory '{path}' is not callable")
    return target


class ServiceManager:
    """Manages service registration, dependency order and lifecycle.

    Each service is created as ``factory(store, bus, dependencies)`` where
    ``dependencies`` maps the names it declared to their started instances,
    then its ``initialize()`` is called and awaited if needed. Services are
    destroyed in reverse start order.
    """

    def __init__(
        self,
        store: StateStore,
        bus: EventBus,
        config: Optional[ServiceManagerConfig] = None
    ) -> None:
        """Initialize the service manager.

        Args:
            store: Shared state store injected into every service
            bus: Shared event bus injected into every service
            config: Lifecycle settings
        """
        if store is None or bus is None:
            raise ConfigurationError("ServiceManager requires a StateStore and an EventBus")
        self.store = store
        self.bus = bus
        self.config = config or ServiceManagerConfig()
        self._services: Dict[str, ServiceDescriptor] = {}
        self._service_order: List[str] = []
        self._started: List[str] = []
        self._health_task: Optional[asyncio.Task] = None
        self.is_initialized = False
        self.is_shutting_down = False

    def register_service(
        self,
        name: ServiceName,
        factory: ServiceFactory,
        dependencies: Iterable[ServiceName] = (),
        *,
        required: bool = True,
        auto_start: bool = True
    ) -> ServiceDescriptor:
        """Register a service.

        Args:
            name: Unique service name or enum token
            factory: Service class or factory function
            dependencies: Services that must start first
            required: Abort start-up if this service fails
            auto_start: Start during ``initialize_services``; otherwise only
                when requested or needed by another service

        Returns:
            The descriptor that was recorded

        Raises:
            ServiceRegistrationError: On a duplicate name or after start-up
        """
        key = service_key(name)
        if self.is_initialized:
            raise ServiceRegistrationError("Cannot register services after initialization")
        if key in self._services:
            raise ServiceRegistrationError(f"Service '{key}' is already registered")
        if not callable(factory):
            raise TypeError(f"Factory for service '{key}' must be callable")

        descriptor = ServiceDescriptor(
            name=key,
            factory=factory,
            dependencies=[service_key(dep) for dep in dependencies],
            required=required,
            auto_start=auto_start,
        )
        self._services[key] = descriptor
        logger.debug(f"Registered service '{key}' (dependencies: {descriptor.dependencies})")
        return descriptor

    def register_from_config(self, entries: Iterable[ServiceEntry]) -> List[str]:
        """Register services whose factories are given as import paths."""
        registered = []
        for entry in entries:
            factory = resolve_factory(entry.factory)
            self.register_service(
                entry.name,
                factory,
                entry.dependencies,
                required=entry.required,
                auto_start=entry.auto_start,
            )
            registered.append(entry.name)
        return registered

    def calculate_service_order(self) -> List[str]:
        """Order services so each one follows all of its dependencies.

        Raises:
            MissingDependencyError: If a dependency is not registered
            CircularDependencyError: If the dependencies form a cycle
        """
        visited: Set[str] = set()
        path: List[str] = []
        order: List[str] = []

        def visit(name: str, dependent: str) -> None:
            if name in visited:
                return
            if name in path:
                raise CircularDependencyError(path[path.index(name):] + [name])

            descriptor = self._services.get(name)
            if descriptor is None:
                raise MissingDependencyError(dependent, name)

            path.append(name)
            for dependency in descriptor.dependencies:
                visit(dependency, name)
            path.pop()

            visited.add(name)
            order.append(name)

        for name in self._services:
            visit(name, name)

        self._service_order = order
        return list(order)

    async def initialize_services(self) -> None:
        """Start every auto-start service and its dependencies in order.

        Raises:
            DependencyError: If the order cannot be computed
            ServiceInitializationError: If a required service fails; the
                services already started are shut down first
        """
        if self.is_initialized:
            return

        order = self.calculate_service_order()
        wanted = self._with_dependencies(
            name for name, descriptor in self._services.items() if descriptor.auto_start
        )

        for name in order:
            if name not in wanted:
                continue
            try:
                await self._start(name)
            except ServiceInitializationError:
                await self._rollback()
                raise

        self.is_initialized = True

        if self.config.enable_health_checks:
            self.start_health_checks()

        started = list(self._started)
        logger.info(f"Initialized {len(started)} services: {', '.join(started)}")
        self.bus.emit(SERVICES_INITIALIZED, {"services": started, "count": len(started)})

    async def start_service(self, name: ServiceName) -> Optional[Any]:
        """Start a single service and whatever it depends on.

        Returns:
            The service instance, or None if an optional service failed
        """
        key = service_key(name)
        if key not in self._services:
            raise ServiceRegistrationError(f"Service '{key}' not found")

        order = self.calculate_service_order()
        wanted = self._with_dependencies([key])
        instance = None
        for service_name in order:
            if service_name in wanted:
                instance = await self._start(service_name)
        return instance

    def get_service(self, name: ServiceName) -> Optional[Any]:
        """Get a running service instance, or None."""
        descriptor = self._lookup(name)
        if descriptor is None:
            return None
        if descriptor.status is not ServiceStatus.INITIALIZED:
            logger.debug(f"Service '{descriptor.name}' not available (status: {descriptor.status.value})")
            return None
        return descriptor.instance

    def is_service_available(self, name: ServiceName) -> bool:
        descriptor = self._lookup(name)
        return descriptor is not None and descriptor.status is ServiceStatus.INITIALIZED

    def get_all_services(self) -> Dict[str, Any]:
        return {
            name: descriptor.instance
            for name, descriptor in self._services.items()
            if descriptor.status is ServiceStatus.INITIALIZED
        }

    def get_service_status(self) -> List[Dict[str, Any]]:
        return [descriptor.to_dict() for descriptor in self._services.values()]

    def get_statistics(self) -> Dict[str, Any]:
        """Summarize the registry."""
        descriptors = list(self._services.values())
        init_times = [d.init_time for d in descriptors if d.init_time is not None]
        return {
            "total_services": len(descriptors),
            "initialized_services": sum(
                1 for d in descriptors if d.status is ServiceStatus.INITIALIZED
            ),
            "failed_services": sum(1 for d in descriptors if d.status is ServiceStatus.FAILED),
            "average_init_time": sum(init_times) / len(init_times) if init_times else 0.0,
            "is_initialized": self.is_initialized,
            "service_order": list(self._service_order),
            "start_order": list(self._started),
        }

    async def shutdown_services(self) -> None:
        """Destroy running services in reverse start order."""
        if self.is_shutting_down:
            return

        self.is_shutting_down = True
        try:
            await self.stop_health_checks()
            for name in reversed(self._started):
                await self._shutdown_service(name)
            self._started.clear()
            self.is_initialized = False
        finally:
            self.is_shutting_down = False

        logger.info("All services shut down")
        self.bus.emit(SERVICES_SHUTDOWN)

    def start_health_checks(self) -> None:
        """Run health checks periodically on the running event loop."""
        if self._health_task is not None:
            return
        loop = asyncio.get_running_loop()
        self._health_task = loop.create_task(self._health_check_loop())

    async def stop_health_checks(self) -> None:
        task, self._health_task = self._health_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_health_checks(self) -> Dict[str, bool]:
        """Call ``health_check()`` on every running service that has one.

        A check that raises or returns False marks the service unhealthy and
        emits ``service:health-check-failed``.

        Returns:
            Service name to health mapping
        """
        results: Dict[str, bool] = {}
        for name in list(self._started):
            descriptor = self._services[name]
            if descriptor.status is not ServiceStatus.INITIALIZED:
                continue

            check = getattr(descriptor.instance, "health_check", None)
            error: Optional[str] = None
            try:
                result = check() if callable(check) else True
                if inspect.isawaitable(result):
                    result = await result
                if result is False:
                    error = "health check returned False"
            except Exception as e:
                error = str(e)

            descriptor.last_health_check = datetime.now()
            results[name] = error is None
            if error is not None:
                logger.warning(f"Health check failed for service '{name}': {error}")
                self.bus.emit(SERVICE_HEALTH_CHECK_FAILED, {"service": name, "error": error})

        return results

    async def _health_check_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.health_check_interval)
            await self.run_health_checks()

    def _lookup(self, name: ServiceName) -> Optional[ServiceDescriptor]:
        try:
            return self._services.get(service_key(name))
        except ServiceRegistrationError:
            return None

    def _with_dependencies(self, names: Iterable[str]) -> Set[str]:
        wanted: Set[str] = set()

        def include(name: str) -> None:
            if name in wanted:
                return
            wanted.add(name)
            for dependency in self._services[name].dependencies:
                include(dependency)

        for name in names:
            include(name)
        return wanted

    async def _start(self, name: str) -> Optional[Any]:
        descriptor = self._services[name]
        if descriptor.status is ServiceStatus.INITIALIZED:
            return descriptor.instance

        # Failed optional dependencies are simply absent
        dependencies = {
            dependency: self._services[dependency].instance
            for dependency in descriptor.dependencies
            if self._services[dependency].status is ServiceStatus.INITIALIZED
        }

        descriptor.status = ServiceStatus.INITIALIZING
        descriptor.error = None
        started_at = time.perf_counter()
        instance = None
        try:
            instance = descriptor.factory(self.store, self.bus, dependencies)
            if instance is None:
                raise DependencyError(f"Service '{name}' factory returned None")

            initialize = getattr(instance, "initialize", None)
            if callable(initialize):
                result = initialize()
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            descriptor.status = ServiceStatus.FAILED
            descriptor.error = e
            descriptor.instance = None
            if instance is not None:
                await self._destroy_instance(name, instance)

            logger.error(f"Failed to initialize service '{name}': {e}")
            self.bus.emit(service_topic(name, "failed"), {
                "service": name,
                "error": e,
                "required": descriptor.required,
            })
            if descriptor.required:
                raise ServiceInitializationError(name, str(e)) from e

            self.bus.report_error(service_topic(name, "initialize"), e, {"service": name})
            return None

        descriptor.instance = instance
        descriptor.status = ServiceStatus.INITIALIZED
        descriptor.init_time = time.perf_counter() - started_at
        self._started.append(name)

        logger.info(f"Service '{name}' initialized in {descriptor.init_time * 1000:.1f}ms")
        self.bus.emit(service_topic(name, "initialized"), {
            "service": name,
            "instance": instance,
            "init_time": descriptor.init_time,
        })
        return instance

    async def _rollback(self) -> None:
        logger.warning("Start-up aborted, shutting down services already started")
        for name in reversed(self._started):
            await self._shutdown_service(name)
        self._started.clear()

    async def _shutdown_service(self, name: str) -> None:
        descriptor = self._services.get(name)
        if descriptor is None or descriptor.status is not ServiceStatus.INITIALIZED:
            return

        await self._destroy_instance(name, descriptor.instance)
        descriptor.status = ServiceStatus.SHUTDOWN
        descriptor.instance = None
        logger.debug(f"Service '{name}' shut down")
        self.bus.emit(service_topic(name, "shutdown"), {"service": name})

    async def _destroy_instance(self, name: str, instance: Any) -> None:
        destroy = getattr(instance, "destroy", None)
        if not callable(destroy):
            return
        try:
            result = destroy()
            if inspect.isawaitable(result):
                await asyncio.wait_for(result, timeout=self.config.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"Service '{name}' did not shut down within {self.config.shutdown_timeout}s"
            )
        except Exception as e:
            logger.error(f"Error shutting down service '{name}': {e}")

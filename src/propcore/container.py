"""
Dependency injection container for the PropCore acquisition core.
"""

from __future__ import annotations

import asyncio
import signal
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Generic, List, Optional, TypeVar
from uuid import uuid4

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from propcore.config import Config
from propcore.config.config import find_config_file

if TYPE_CHECKING:
    from propcore.cache import CacheLayer
    from propcore.observability import MetricsManager
    from propcore.pipeline import AcquisitionPipeline

T = TypeVar("T")


class LazyInstance(Generic[T]):
    """Lazy-loaded instance with lifecycle management."""

    def __init__(self, factory: Callable[..., T], *args: Any, **kwargs: Any) -> None:
        self._factory = factory
        self._args = args
        self._kwargs = kwargs
        self._instance: Optional[T] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def get(self) -> T:
        """Get or create the instance."""
        if not self._initialized:
            self._instance = self._factory(*self._args, **self._kwargs)
            if callable(getattr(self._instance, "initialize", None)):
                await self._instance.initialize()  # type: ignore
            self._initialized = True
        assert self._instance is not None
        return self._instance

    async def cleanup(self) -> None:
        """Close the instance if it was ever created."""
        if self._instance is not None and callable(getattr(self._instance, "close", None)):
            await self._instance.close()  # type: ignore
        self._instance = None
        self._initialized = False


class ConfigWatcher(FileSystemEventHandler):
    """Reloads the container when its YAML file changes on disk.

    watchdog delivers events on its own thread, so the reload is handed to
    the loop the container was started on.
    """

    def __init__(self, container: DependencyContainer, loop: asyncio.AbstractEventLoop) -> None:
        self.container = container
        self.loop = loop
        self.logger = structlog.get_logger(self.__class__.__name__)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory or not str(event.src_path).endswith((".yaml", ".yml")):
            return
        if self.container.config_path and Path(str(event.src_path)).name != self.container.config_path.name:
            return
        self.logger.info("Configuration file changed, reloading", path=event.src_path)
        asyncio.run_coroutine_threadsafe(self.container.reload_config(), self.loop)


class DependencyContainer:
    """
    Owns the configuration and the long-lived services built from it: the
    metrics exporter and the acquisition pipeline (which in turn owns the
    browser pool and the cache layer).
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        *,
        config: Optional[Config] = None,
        watch_config: bool = True,
        handle_signals: bool = True,
    ) -> None:
        self.config_path = config_path
        self.config: Optional[Config] = config
        self.watch_config = watch_config
        self.handle_signals = handle_signals
        self.logger = structlog.get_logger(self.__class__.__name__)

        self._instances: Dict[str, LazyInstance[Any]] = {}
        self._instances_lock = asyncio.Lock()
        self._observer: Optional[Any] = None
        self._shutdown_handlers: List[Callable[[], Any]] = []

        self.container_id = str(uuid4())
        self.is_running = False

    async def initialize(self) -> None:
        """Load configuration (unless one was injected) and prepare instances."""
        if self.config is None:
            await self.load_config()
        else:
            await self._create_instances()

        if self.watch_config:
            await self._setup_config_watching()
        if self.handle_signals:
            await self._setup_signal_handlers()

        self.is_running = True
        self.logger.info(
            "Dependency container initialized",
            container_id=self.container_id,
            config_path=str(self.config_path) if self.config_path else "default",
        )

    async def load_config(self) -> None:
        """Load or reload configuration."""
        if self.config_path is None:
            self.config_path = find_config_file()
        if self.config_path and self.config_path.exists():
            self.config = Config.from_yaml(self.config_path)
        else:
            self.config = Config()

        await self._create_instances()

    async def _create_instances(self) -> None:
        if self.config is None:
            raise RuntimeError("Configuration must be loaded before creating instances")

        await self._cleanup_instances()
        self._instances.clear()

        # Deferred to avoid an import cycle through propcore/__init__
        from propcore.observability import MetricsManager, configure_logging
        from propcore.pipeline import AcquisitionPipeline

        configure_logging(self.config.monitoring)

        self._instances = {
            "metrics": LazyInstance(MetricsManager, self.config.monitoring),
            "pipeline": LazyInstance(AcquisitionPipeline, self.config),
        }

    async def reload_config(self) -> None:
        """Hot-reload configuration; services are rebuilt on next access."""
        old_config = self.config
        async with self._instances_lock:
            await self.load_config()

        self.logger.info(
            "Configuration reloaded",
            container_id=self.container_id,
            changes_detected=old_config != self.config,
        )

    async def get_metrics(self) -> MetricsManager:
        async with self._instances_lock:
            return await self._instances["metrics"].get()  # type: ignore

    async def get_pipeline(self) -> AcquisitionPipeline:
        """Get the acquisition pipeline, launching nothing until first use."""
        async with self._instances_lock:
            return await self._instances["pipeline"].get()  # type: ignore

    async def get_cache(self) -> CacheLayer:
        pipeline = await self.get_pipeline()
        return pipeline.cache

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[DependencyContainer]:
        """Context manager for proper lifecycle management."""
        try:
            await self.initialize()
            yield self
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Graceful shutdown of all managed instances."""
        if not self.is_running:
            return

        self.logger.info("Shutting down dependency container", container_id=self.container_id)

        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

        for handler in self._shutdown_handlers:
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler()
                else:
                    handler()
            except Exception as e:
                self.logger.error("Error in shutdown handler", error=str(e))

        await self._cleanup_instances()

        self.is_running = False
        self.logger.info("Dependency container shutdown complete")

    async def _setup_config_watching(self) -> None:
        if not self.config_path or not self.config_path.exists():
            return

        self._observer = Observer()
        handler = ConfigWatcher(self, asyncio.get_running_loop())
        self._observer.schedule(handler, str(self.config_path.resolve().parent), recursive=False)
        self._observer.start()

    async def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def signal_handler(signum: int, frame: Any) -> None:
            self.logger.info("Received signal, initiating shutdown", signal=signum)
            loop.create_task(self.shutdown())

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

    async def _cleanup_instances(self) -> None:
        for name, instance in self._instances.items():
            try:
                await instance.cleanup()
            except Exception as e:
                self.logger.error("Error cleaning up instance", instance=name, error=str(e))

    def add_shutdown_handler(self, handler: Callable[[], Any]) -> None:
        self._shutdown_handlers.append(handler)

    def get_health_status(self) -> Dict[str, Any]:
        """Health summary of the container and whichever services are live."""
        return {
            "container_id": self.container_id,
            "is_running": self.is_running,
            "config_loaded": self.config is not None,
            "instances_count": len(self._instances),
            "instances_live": sorted(name for name, inst in self._instances.items() if inst.initialized),
            "config_path": str(self.config_path) if self.config_path else None,
        }

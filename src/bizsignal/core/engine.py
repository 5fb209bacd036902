"""引擎装配 -- 由 StoreGroup + EngineConfig 构造完整的服务集合

注册表与模板目录在此加载一次并注入检测器/生成器，Gateway 与 CLI 共用。
"""

from dataclasses import dataclass

import structlog

from .assignment import (
    AssignmentResolver,
    DirectoryAssignmentResolver,
    UnresolvedAssignmentResolver,
    load_role_directory,
)
from .clock import Clock, SystemClock
from .config import EngineConfig
from .detector import EventDetector
from .registry.patterns import PatternRegistry
from .registry.templates import TemplateCatalog, load_templates_file
from .services import (
    EventService,
    InMemoryChangeFeed,
    ModuleIntegrationListener,
    PendingEventHub,
    TaskGenerator,
    TaskService,
)
from .store import StoreGroup

log = structlog.get_logger()


@dataclass
class Engine:
    store_group: StoreGroup
    config: EngineConfig
    registry: PatternRegistry
    catalog: TemplateCatalog
    detector: EventDetector
    event_service: EventService
    task_generator: TaskGenerator
    task_service: TaskService
    feed: InMemoryChangeFeed
    listener: ModuleIntegrationListener


def create_engine(
    store_group: StoreGroup,
    config: EngineConfig | None = None,
    *,
    clock: Clock | None = None,
    feed: InMemoryChangeFeed | None = None,
    resolver: AssignmentResolver | None = None,
    registry: PatternRegistry | None = None,
    catalog: TemplateCatalog | None = None,
) -> Engine:
    """构造引擎（不启动订阅）"""
    config = config or EngineConfig()
    clock = clock or SystemClock()
    feed = feed or InMemoryChangeFeed()
    registry = registry or PatternRegistry.default()

    if catalog is None:
        catalog = TemplateCatalog.default()
        if config.templates_file:
            catalog = catalog.with_templates(load_templates_file(config.templates_file))

    if resolver is None:
        if config.role_directory_file:
            resolver = DirectoryAssignmentResolver(load_role_directory(config.role_directory_file))
        else:
            resolver = UnresolvedAssignmentResolver()

    detector = EventDetector(registry, clock=clock)
    event_service = EventService(
        store_group,
        hub=PendingEventHub(),
        clock=clock,
        page_size=config.pending_page_size,
    )
    task_generator = TaskGenerator(
        store_group,
        catalog,
        resolver=resolver,
        clock=clock,
        require_assignment=config.require_assignment,
    )
    task_service = TaskService(store_group, clock=clock)
    listener = ModuleIntegrationListener(
        event_service=event_service,
        task_generator=task_generator,
        task_service=task_service,
        detector=detector,
        feed=feed,
        config=config,
        clock=clock,
    )
    log.info(
        "engine_created",
        modules=registry.modules(),
        templates=len(catalog),
        resolver=type(resolver).__name__,
    )
    return Engine(
        store_group=store_group,
        config=config,
        registry=registry,
        catalog=catalog,
        detector=detector,
        event_service=event_service,
        task_generator=task_generator,
        task_service=task_service,
        feed=feed,
        listener=listener,
    )

"""
Service wiring.

Builds the clients, stores and pipeline components once per process from
settings and configuration.
"""

from dataclasses import dataclass
from typing import Optional

from previz.core.config import PrevizConfig, load_config
from previz.core.exceptions import InvalidConfigError
from previz.core.logging_config import LogLevel, get_logger, setup_logging
from previz.core.settings import Settings, get_settings
from previz.ingestion.ocr_client import OCRClient
from previz.ingestion.script_ingestor import ScriptIngestor
from previz.llm.api_clients import ChatCompletionsClient, ImageGenerationClient
from previz.llm.edge_functions import EdgeFunctionClient
from previz.pipelines.batch_render import GenerateAllFrames
from previz.pipelines.frame_renderer import FrameRenderer
from previz.pipelines.render_gate import RenderGate
from previz.pipelines.render_service import FrameRenderService
from previz.pipelines.shot_planner import ShotPlanner
from previz.storage.project_store import ProjectStateStore
from previz.storage.record_store import InMemoryRecordStore, RecordStore
from previz.storage.supabase_store import SupabaseRecordStore

logger = get_logger("services")


@dataclass
class PrevizServices:
    """Process-wide components shared by every request."""
    config: PrevizConfig
    store: ProjectStateStore
    ingestor: ScriptIngestor
    planner: ShotPlanner
    renderer: FrameRenderer
    render_service: FrameRenderService
    batch: GenerateAllFrames


def build_record_store(settings: Settings) -> RecordStore:
    backend = settings.record_backend.lower()
    if backend == "memory":
        return InMemoryRecordStore()
    if backend == "supabase":
        return SupabaseRecordStore()
    raise InvalidConfigError(f"Unknown record backend: {settings.record_backend}")


def build_services(
    settings: Optional[Settings] = None,
    config: Optional[PrevizConfig] = None,
    records: Optional[RecordStore] = None
) -> PrevizServices:
    settings = settings or get_settings()
    config = config or load_config(settings.config_path)

    setup_logging(
        level=LogLevel.DEBUG if settings.debug else LogLevel.INFO,
        log_file=config.log_file,
        verbose=config.verbose_logging,
    )

    store = ProjectStateStore(records or build_record_store(settings))

    functions = None
    if settings.supabase_url:
        functions = EdgeFunctionClient(
            settings.functions_url,
            settings.supabase_anon_key,
            timeout=config.ingestion.ocr_timeout,
        )

    chat = ChatCompletionsClient(
        settings.llm_base_url,
        settings.resolved_llm_api_key(),
        timeout=config.planner.timeout,
    )
    images = ImageGenerationClient(
        settings.image_base_url,
        settings.resolved_image_api_key(),
        timeout=config.render.timeout,
    )

    renderer = FrameRenderer(images, config.render)
    render_service = FrameRenderService(store, renderer, RenderGate(config.render.delay_seconds))

    services = PrevizServices(
        config=config,
        store=store,
        ingestor=ScriptIngestor(OCRClient(functions) if functions else None, config.ingestion),
        planner=ShotPlanner(chat, config.planner, functions),
        renderer=renderer,
        render_service=render_service,
        batch=GenerateAllFrames(render_service, store),
    )
    logger.info(f"Services ready (records: {settings.record_backend})")
    return services

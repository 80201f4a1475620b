import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import ManualJConfig, load_config, setup_logging
from app.database import build_engine, create_db_and_tables
from app.middleware.error_handler import register_error_handlers
from app.routes import log, manual_j
from core.environment import load_environment, validate_required_env_vars
from services.chat_service import ChatAssistant
from services.interaction_log import InteractionLog
from services.manual_j_chain import ManualJChain
from services.model_client import ModelClient, OpenAIModelClient
from services.project_store import ProjectStore

logger = logging.getLogger(__name__)


class AppServices:
    """
    Model-backed services, built on first use.

    The OpenAI client needs an API key; building it lazily lets the app
    start (and serve health checks) without one, and surfaces the
    ConfigurationError on the first request that needs the model.
    """

    def __init__(self, config: ManualJConfig, store: ProjectStore, model_client: Optional[ModelClient] = None):
        self.config = config
        self.store = store
        self._model_client = model_client
        self._chain: Optional[ManualJChain] = None
        self._chat: Optional[ChatAssistant] = None

    def model_client(self) -> ModelClient:
        if self._model_client is None:
            self._model_client = OpenAIModelClient(self.config)
        return self._model_client

    def manual_j_chain(self) -> ManualJChain:
        if self._chain is None:
            self._chain = ManualJChain(self.model_client(), self.config)
        return self._chain

    def chat_assistant(self) -> ChatAssistant:
        if self._chat is None:
            self._chat = ChatAssistant(self.model_client(), self.store, self.config)
        return self._chat

    async def close(self) -> None:
        close = getattr(self._model_client, "close", None)
        if close is not None:
            await close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database tables on startup, release clients on shutdown"""
    logger.info("Initializing database tables...")
    create_db_and_tables(app.state.engine)
    logger.info("Database tables initialized")
    yield
    await app.state.services.close()
    app.state.engine.dispose()


def create_app(config: Optional[ManualJConfig] = None, model_client: Optional[ModelClient] = None) -> FastAPI:
    if config is None:
        load_environment()
        config = load_config()
    setup_logging(config.debug)

    missing = validate_required_env_vars(["OPENAI_API_KEY"])
    if missing and model_client is None and not config.openai_api_key:
        logger.warning(f"{', '.join(missing)} not set; model-backed endpoints will fail until it is")

    app = FastAPI(
        title="Battery Builds Manual J API",
        version="1.0.0",
        description="Residential heating and cooling load calculations from building plans",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )
    register_error_handlers(app)

    store = ProjectStore()
    app.state.config = config
    app.state.engine = build_engine(config.database_url)
    app.state.project_store = store
    app.state.interaction_log = InteractionLog()
    app.state.services = AppServices(config, store, model_client)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"REQUEST: {request.method} {request.url.path}")
        response = await call_next(request)
        logger.info(f"RESPONSE: {response.status_code} {request.url.path}")
        return response

    app.include_router(manual_j.router, prefix="/api/manual-j", tags=["manual-j"])
    app.include_router(log.router, prefix="/api/log", tags=["log"])

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/healthz")
    async def healthz():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "battery-builds-manual-j",
            "environment": config.environment,
        }

    return app


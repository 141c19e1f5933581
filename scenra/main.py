"""
Scenra - Main Application

AI film crew roundtable: five personas debate a brief in two rounds and
converge on one optimized, character-consistent Sora prompt.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import uvicorn
from contextlib import asynccontextmanager
from pathlib import Path
import logging
import sys
from datetime import datetime

from scenra.config import get_settings
from scenra.services.logger import init_logger
from scenra.services.llm_router import init_llm_router
from scenra.services.llm import init_llm_service
from scenra.services.series_repository import init_series_repository
from scenra.crew.roundtable import RoundtableOrchestrator
from scenra.api.routes import router, set_orchestrator

# Configure logging to both file and console
log_dir = Path("logs")
log_dir.mkdir(exist_ok=True)
log_file = log_dir / f"scenra_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

# Create formatters
file_formatter = logging.Formatter(
    '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
console_formatter = logging.Formatter('%(message)s')

# File handler (detailed logs)
file_handler = logging.FileHandler(log_file, encoding='utf-8')
file_handler.setLevel(logging.DEBUG)
file_handler.setFormatter(file_formatter)

# Console handler (user-friendly output)
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(console_formatter)

# Configure root logger
logging.basicConfig(
    level=logging.DEBUG,
    handlers=[file_handler, console_handler]
)

# The OpenAI client logs every HTTP request at DEBUG
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.INFO)

logger = logging.getLogger(__name__)
logger.info(f"📝 Logging to: {log_file}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle management for the application.

    Initializes services on startup, cleans up on shutdown.
    """
    settings = get_settings()

    print("🎬 Initializing Scenra...")

    # Initialize logger with settings
    app_logger = init_logger(settings=settings)

    debug_flags = []
    if settings.debug_agent_io:
        debug_flags.append("Agent I/O")
    if settings.debug_api_calls:
        debug_flags.append("API Calls")
    if debug_flags:
        print(f"🐛 Debug logging enabled: {', '.join(debug_flags)}")
        print(f"📊 Debug logs: {settings.debug_log_dir}/")

    # Initialize LLM Router (centralized model configuration)
    # This loads models.yaml and applies any TEST_*_MODEL env var overrides
    llm_router = init_llm_router(settings.models_config_path)
    print("📋 LLM Router initialized")
    llm_router.log_configuration()

    # Validate critical environment variables
    print("🔍 Validating environment variables...")
    if not settings.openai_api_key:
        print("❌ OPENAI_API_KEY is missing! Roundtable calls will fail.")
        print("   💡 Set OPENAI_API_KEY in .env file")
    else:
        masked_key = f"{settings.openai_api_key[:8]}...{settings.openai_api_key[-4:]}" if len(settings.openai_api_key) > 12 else "***"
        print(f"✅ OPENAI_API_KEY: {masked_key}")

    llm_service = init_llm_service(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.llm_timeout_seconds,
        router=llm_router,
        app_logger=app_logger,
    )

    # Series data
    repository = init_series_repository(settings.seed_path)
    print(f"📚 Series repository ready ({type(repository).__name__})")

    # Roundtable
    orchestrator = RoundtableOrchestrator(llm_service, logger=app_logger)
    set_orchestrator(orchestrator)
    print(f"✅ Film crew assembled (round 2 steps: {len(orchestrator.debate_plan)})")

    print(f"🎬 Scenra ready on port {settings.port}!")
    print(f"📚 API Documentation: http://localhost:{settings.port}/docs")

    yield

    # Shutdown
    print("👋 Shutting down Scenra...")
    set_orchestrator(None)
    await llm_service.close()


# Create FastAPI app
app = FastAPI(
    title="Scenra",
    description="""
    AI film crew roundtable for Sora video prompts.

    Features:
    - Five-persona roundtable (Director, Cinematographer, Editor, Colorist, Platform Expert)
    - Two rounds of discussion, then synthesis into one optimized prompt
    - Live progress over Server-Sent Events
    - Locked series characters with consistency validation

    Built with FastAPI and the OpenAI API.
    """,
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
# Configure allowed origins from environment variable (default: "*" for all origins)
_settings = get_settings()
_cors_origins = (
    ["*"] if _settings.cors_allowed_origins == "*"
    else [origin.strip() for origin in _settings.cors_allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Validation error handler - log details for debugging
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    error_details = []
    for error in errors:
        input_val = error.get('input', 'N/A')
        # Truncate long inputs for readability
        if isinstance(input_val, str) and len(input_val) > 100:
            input_val = input_val[:100] + "..."
        error_details.append(f"{error['loc']}: {error['msg']} (input: {input_val})")

    logger.error(f"❌ Validation Error on {request.url.path}: " + " | ".join(error_details))

    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()}
    )


# Global exception handler - catch unhandled exceptions to prevent crashes
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch all unhandled exceptions.
    Logs the error and returns a friendly error message with an id to look up.
    """
    error_id = datetime.now().strftime('%Y%m%d_%H%M%S_%f')

    logger.error(f"❌ UNHANDLED EXCEPTION [{error_id}]")
    logger.error(f"   Path: {request.url.path}")
    logger.error(f"   Method: {request.method}")
    logger.error(f"   Error: {type(exc).__name__}: {exc}", exc_info=exc)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please try again."
        }
    )


# Include routes
app.include_router(router)


@app.get("/")
async def root():
    """Root endpoint - API info"""
    return {
        "message": "Welcome to Scenra!",
        "docs": "/docs",
        "health": "/api/health",
        "version": "1.0.0"
    }


def main():
    """Run the application"""
    settings = get_settings()

    uvicorn.run(
        "scenra.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()

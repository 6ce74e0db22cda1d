"""
FastAPI Application Entry Point

Integrates:
  - WhatsApp webhook handler
  - Conversation engine endpoints (invoke, context, memory)
  - Health checks
  - Middleware for logging & error handling

Run: uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from agent.orchestrator import ConversationEngine
from config import Config
from infra import InfraBootstrap
from transport.whatsapp import InvokePayload, get_engine
from transport.whatsapp import router as whatsapp_router

# Setup logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan: wire the engine and run the expiry sweeper.
    """
    # Startup
    bootstrap = InfraBootstrap.get_instance()
    Config.validate()
    logger.info("=" * 60)
    logger.info("ERP Demo assistant starting up...")
    logger.info(f"Service: {bootstrap.catalog.service.name}")
    logger.info(f"Environment: {Config.ENVIRONMENT}")
    logger.info(f"Infrastructure: {bootstrap!r}")
    logger.info("=" * 60)
    bootstrap.sweeper.start()

    yield

    # Shutdown
    await bootstrap.sweeper.stop()
    logger.info("ERP Demo assistant shutting down...")


# Create FastAPI app
app = FastAPI(
    title="ERP Demo WhatsApp Assistant",
    description="WhatsApp assistant with conversational memory for the ERP demo",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict this in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Middleware for logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests."""
    logger.debug(f"{request.method} {request.url.path}")
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"Request error: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


# Include routers
app.include_router(whatsapp_router)


# ============================================================================
# ENGINE ENDPOINTS
# ============================================================================

@app.post("/invoke")
async def invoke(payload: InvokePayload, engine: ConversationEngine = Depends(get_engine)):
    """Run one message through the engine without going through WhatsApp."""
    reply = await engine.handle_message(payload.conversation_key, payload.text, trace_id=payload.trace_id)
    return reply.to_dict()


@app.get("/context/{conversation_key}")
async def get_context(conversation_key: str, engine: ConversationEngine = Depends(get_engine)):
    """Current ContextView of a conversation."""
    return engine.project_context(conversation_key).to_dict()


@app.delete("/memory/{conversation_key}")
async def delete_memory(conversation_key: str, engine: ConversationEngine = Depends(get_engine)):
    """Forget a conversation."""
    removed = await engine.reset(conversation_key)
    return {"conversation_key": conversation_key, "removed": removed}


@app.get("/memory/stats")
async def memory_stats(engine: ConversationEngine = Depends(get_engine)):
    return engine.stats()


# Health check endpoints
@app.get("/health/live")
async def health_live():
    """Live health check (Kubernetes liveness probe)."""
    return {"status": "alive"}


@app.get("/health/ready")
async def health_ready():
    """Readiness health check (Kubernetes readiness probe)."""
    try:
        bootstrap = InfraBootstrap.get_instance()
        return {
            "status": "ready",
            "whatsapp_configured": Config.validate(),
            "sweeper_running": bootstrap.sweeper.running,
        }
    except Exception as e:
        return {"status": "not_ready", "reason": str(e)}


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "ERP Demo WhatsApp Assistant",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "whatsapp_challenge": "GET /webhook/whatsapp",
            "whatsapp_webhook": "POST /webhook/whatsapp",
            "invoke": "POST /invoke",
            "context": "GET /context/{conversation_key}",
            "memory_reset": "DELETE /memory/{conversation_key}",
            "memory_stats": "GET /memory/stats",
            "health_live": "GET /health/live",
            "health_ready": "GET /health/ready",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=Config.AGENT_PORT,
        reload=Config.ENVIRONMENT == "development",
    )

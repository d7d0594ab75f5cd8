"""FastAPI application entry point for the ReplyMate API."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from replymate.agents.reply.policy import get_policy
from replymate.app.config import get_settings
from replymate.app.routes.deps import ApiError
from replymate.app.routes.reply import router as reply_router
from replymate.infra.database import init_db
from replymate.services.reply_pipeline import wait_for_accounting

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: initialize database and policy on startup."""
    await init_db()
    policy = get_policy()
    logger.info("Reply policy %s active (%d intents)", policy.version, len(policy.intents))
    yield
    # Let in-flight accounting writes land before the engine goes away
    await wait_for_accounting()


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="ReplyMate API",
    lifespan=lifespan,
    debug=settings.debug,
)

_cors_origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=("*" not in _cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error shapes
# ---------------------------------------------------------------------------

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    message = str(first.get("msg", "Invalid request"))
    if first.get("type") == "value_error":
        message = message.removeprefix("Value error, ")
    else:
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        if field:
            message = f"{field}: {message}"
    return JSONResponse(status_code=400, content={"error": message})


# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------

app.include_router(reply_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Return service health status."""
    return {"status": "ok", "service": "replymate", "policy_version": get_policy().version}


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "replymate.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()

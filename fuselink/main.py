"""FastAPI application entry point for fuselink.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ build       │
    │ ServiceMgr, │
    │ init_db()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ close cache │
    │ dispose db  │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn fuselink.main:app --host 0.0.0.0 --port 8080

**Step 2 — Make API calls**::
    curl -X POST http://localhost:8080/api/shorten \\
         -H "Content-Type: application/json" \\
         -d '{"url": "https://example.com", "destruction": {"kind": "click_fuse", "remaining": 1}}'

Key Behaviours
===============
- Database tables are created automatically on startup.
- No connection is opened at import time.
- Prometheus metrics are exposed at /metrics.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from fuselink.config import get_settings
from fuselink.dependencies import ServiceManager
from fuselink.exceptions import FuseLinkError
from fuselink.routes import fuselink_error_handler, router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    manager = ServiceManager.from_settings(settings)
    await manager.startup()
    app.state.service_manager = manager
    yield
    # Shutdown
    await manager.cleanup()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Emoji short links that can self-destruct",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.add_exception_handler(FuseLinkError, fuselink_error_handler)
app.include_router(router)

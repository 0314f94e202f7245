from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from questionnaire_ai.db.config import settings

# ============================================================
# 🪵 Logging Setup
# ============================================================
logging.basicConfig(
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(filename)s:%(lineno)d | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    level=settings.log_level.upper(),
)
logger = logging.getLogger("qa.app")

# ============================================================
# 📦 Core Imports (DB + Dependency Injection)
# ============================================================
from questionnaire_ai.db.session import DatabasePool, ensure_schema, ping_db
from questionnaire_ai.container import build_container

# ============================================================
# 🌐 Routers
# ============================================================
from questionnaire_ai.router import health as health_module
from questionnaire_ai.router import questionnaire as questionnaire_module


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Initializing Questionnaire AI backend...")

    # --- Database connection (only the pgvector backend needs it) ---
    if settings.retriever_backend == "pgvector":
        try:
            DatabasePool.init()
            ok, msg = ping_db()
            if ok:
                logger.info(f"✅ Database OK: {msg}")
                ensure_schema()
            else:
                logger.warning(f"⚠️ DB ping failed: {msg}")
        except Exception as e:
            logger.warning(f"⚠️ Database init skipped or failed: {e}")

    # --- Build container ---
    try:
        container = build_container(settings)
    except Exception as e:
        logger.error(f"❌ Container init failed: {e}", exc_info=True)
        raise
    app.state.container = container
    questionnaire_module.questionnaire_service = container.questionnaire_service
    health_module.ready = True
    logger.info(f"🎯 API is ready and accepting requests (mode={container.mode})")

    try:
        yield
    finally:
        health_module.ready = False
        questionnaire_module.questionnaire_service = None
        DatabasePool.close()
        logger.info("🧹 Application shutdown complete")


# ============================================================
# 🌍 FastAPI App Definition
# ============================================================
app = FastAPI(
    title="Questionnaire AI",
    description="Parses vendor security questionnaires, answers them from the organization's knowledge base, and exports the result.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_module.router)
app.include_router(questionnaire_module.router)


@app.get("/")
def root():
    return {
        "app": "Questionnaire AI (Ollama + Postgres)",
        "version": "1.0.0",
        "mode": settings.retriever_backend,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "readiness": "/health/ready",
            "parse": "/questionnaire/parse",
            "answers": "/questionnaire/answers",
            "answer": "/questionnaire/answer",
            "export": "/questionnaire/export",
            "auto_answer": "/questionnaire/auto-answer",
        },
    }


# ============================================================
# 🏁 Entrypoint
# ============================================================
if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Questionnaire AI on port 8080...")
    uvicorn.run(
        "questionnaire_ai.main:app",
        host="0.0.0.0",
        port=8080,
        reload=False,
        log_config=None,
    )

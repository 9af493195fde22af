# app/main.py
from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.deps import get_db
from app.api.v1.admin import router as admin_router
from app.api.v1.applications import router as applications_router
from app.api.v1.auth import router as auth_router
from app.api.v1.mentors import router as mentors_router
from app.api.v1.mentorship import router as mentorship_router
from app.api.v1.newsletter import router as newsletter_router
from app.api.v1.notifications import router as notifications_router
from app.api.v1.partners import router as partners_router
from app.api.v1.programs import router as programs_router
from app.api.v1.sessions import router as sessions_router
from app.config import settings
from app.logging_config import setup_logging
from app.services.autosave import draft_autosaver
from app.services.change_feed import change_feed, pending_review_counter
from app.services.errors import PortalError

logger = logging.getLogger(__name__)


def _seed_pending_count(app: FastAPI) -> None:
    """启动时读取一次 submitted 数量，之后由变更事件维护"""
    db_factory = app.dependency_overrides.get(get_db, get_db)
    try:
        result = db_factory().table("applications").select("id").eq("status", "submitted").execute()
        pending_review_counter.seed(len(result.data or []))
    except Exception as e:
        logger.warning(f"初始化待审核数量失败，从 0 开始: {e}")
        pending_review_counter.seed(0)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    _seed_pending_count(app)
    pending_review_counter.start(change_feed)
    logger.info(f"{settings.APP_NAME} 启动 (env={settings.ENVIRONMENT})")
    yield
    # 关闭前写出还在等待的自动保存
    draft_autosaver.flush_all()
    pending_review_counter.stop()


app = FastAPI(
    title=f"{settings.APP_NAME} Backend",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
    return response


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
def health_check():
    return {"status": "ok"}


# 注册路由
for router in (
    auth_router,
    programs_router,
    applications_router,
    mentorship_router,
    mentors_router,
    sessions_router,
    notifications_router,
    newsletter_router,
    partners_router,
    admin_router,
):
    app.include_router(router, prefix="/api")

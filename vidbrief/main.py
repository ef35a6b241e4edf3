import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vidbrief.api.router import api_router
from vidbrief.core.config import settings
from vidbrief.core.errors import VidbriefError
from vidbrief.shared.db.database import init_db

# ตั้งค่า logging เพื่อให้เห็น error ได้ง่ายขึ้น
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("FastAPI application startup complete.")
    yield


def create_app(init_database: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Ingests videos through Mux and enriches their transcripts with Gemini.",
        version="1.0.0",
        lifespan=lifespan if init_database else None,
    )

    @app.exception_handler(VidbriefError)
    async def vidbrief_exception_handler(request: Request, exc: VidbriefError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=error_body("VALIDATION_ERROR", str(exc.errors())))

    # สร้าง Exception Handler เพื่อดักจับ Error ทั้งหมด
    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(f"An unhandled exception occurred: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_body("INTERNAL_ERROR", "An internal server error occurred."),
        )

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(api_router)
    return app


app = create_app()

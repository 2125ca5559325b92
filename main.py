import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from database import ensure_indexes, get_db
from errors import ApiError
from logging_utils import RequestLoggingMiddleware, setup_logging
from routers import auth, bootcamps, courses, reviews, users
from schemas import error_messages

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(get_db())
    logger.info("DevCamper API started in %s mode", settings.environment)
    yield


# App and CORS
app = FastAPI(title="DevCamper API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware, log_requests=settings.log_requests)

for module in (auth, bootcamps, courses, reviews, users):
    app.include_router(module.router, prefix=API_PREFIX)

# Uploaded bootcamp photos
app.mount("/uploads", StaticFiles(directory=settings.file_upload_path, check_dir=False), name="uploads")


# Errors
def error_response(status_code: int, error) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(400, error_messages(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, exc.detail)


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("%s %s database error: %s", request.method, request.url.path, exc)
    return error_response(500, "Server error")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("%s %s unhandled error", request.method, request.url.path, exc_info=exc)
    return error_response(500, "Server error")


# Utility endpoints
@app.get("/")
def root():
    return {"message": "DevCamper API running"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    try:
        collections = db.list_collection_names()
        return {"backend": "ok", "database": "ok", "collections": collections}
    except PyMongoError as e:
        return {"backend": "ok", "database": f"error: {e}"}

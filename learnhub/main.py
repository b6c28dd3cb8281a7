import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnhub import __version__
from learnhub.config import CORS_ORIGINS, LOG_LEVEL
from learnhub.database import close_db, get_db
from learnhub.errors import AppError
from learnhub.routes import api_router
from learnhub.store import CredentialStore

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = await get_db()
    await CredentialStore(db).ensure_indexes()
    await db["product"].create_index("slug", unique=True)
    logger.info("LearnHub API %s started", __version__)
    yield
    close_db()


app = FastAPI(title="LearnHub API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = int((time.perf_counter() - start) * 1000)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request_id=%s method=%s path=%s status=%s duration_ms=%s",
        request_id,
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.warning(
        "AppError request_id=%s path=%s status=%s code=%s message=%s",
        getattr(request.state, "request_id", "-"),
        request.url.path,
        exc.http_status,
        exc.code,
        exc.message,
    )
    return _failure(exc.http_status, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
        field = ".".join(loc)
        message = f"{field}: {errors[0].get('msg')}" if field else errors[0].get("msg", message)
    return _failure(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _failure(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled server error: %s", exc)
    return _failure(500, "Internal Server Error")


@app.get("/")
def read_root():
    return {"message": "Hello from LearnHub API!"}


@app.get("/test")
async def test_database(db: AsyncIOMotorDatabase = Depends(get_db)):
    """Check that the database is reachable."""
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_name": getattr(db, "name", None),
        "collections": [],
    }
    try:
        collections = await db.list_collection_names()
        response["collections"] = collections[:10]
        response["database"] = "Connected & Working"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"Error: {str(e)[:50]}"
    return response


app.include_router(api_router)

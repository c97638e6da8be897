import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.app.config import CORS_ORIGINS
from src.app.database import Base, engine
from src.app import models  # noqa: F401  registers all models with Base.metadata
from src.app.routers import auth as auth_router
from src.app.routers import csrf as csrf_router
from src.app.routers import customers as customers_router
from src.app.routers import orders as orders_router
from src.app.routers import products as products_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Creates missing tables; existing ones are left untouched.
    Base.metadata.create_all(bind=engine)
    yield


logger = logging.getLogger(__name__)

app = FastAPI(title="Larek Shop API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every error leaves the API as {"message": ...} with the matching status.


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"message": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler: return clean JSON instead of leaking stack traces."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": "An internal server error occurred"},
    )


app.include_router(csrf_router.router)
app.include_router(auth_router.router)
app.include_router(products_router.router)
app.include_router(orders_router.router)
app.include_router(customers_router.router)


@app.get("/health")
def health():
    return {"status": "ok"}

import logging

uvicorn_logger = logging.getLogger("uvicorn")

app_logger = logging.getLogger("storefront")
app_logger.setLevel(logging.DEBUG)
app_logger.handlers = uvicorn_logger.handlers
app_logger.propagate = False

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from storefront.core.ai_client import ai_client
from storefront.core.config import settings
from storefront.core.exceptions import StorefrontError, ValidationError
from storefront.schemas.common import ActionResult
from storefront.api.v1.admin import router as admin_router
from storefront.api.v1.addresses import router as addresses_router
from storefront.api.v1.cart import router as cart_router
from storefront.api.v1.checkout import router as checkout_router
from storefront.api.v1.growth import router as growth_router
from storefront.api.v1.orders import router as orders_router
from storefront.api.v1.products import router as products_router
from storefront.api.v1.registries import router as registries_router

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


app = FastAPI(
    title=f"{settings.SHOP_NAME} Storefront",
    description="Cart, checkout and order API",
    version="1.0.0",
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Guest carts are keyed by an id stored in this signed cookie
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    session_cookie=settings.CART_SESSION_COOKIE,
    max_age=settings.CART_SESSION_MAX_AGE,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(orders_router)
app.include_router(addresses_router)
app.include_router(products_router)
app.include_router(registries_router)
app.include_router(growth_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "shop_name": settings.SHOP_NAME}


def _envelope(status_code: int, result: ActionResult) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(request: Request, exc: StorefrontError):
    field_errors = exc.field_errors if isinstance(exc, ValidationError) and exc.field_errors else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return _envelope(exc.status_code, ActionResult.fail(exc.message, field_errors))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    field_errors = {}
    for error in exc.errors():
        # Drop the "body"/"query"/"path" prefix so keys are plain field names
        loc = [str(part) for part in error.get("loc", ())[1:]] or ["__root__"]
        field_errors.setdefault(".".join(loc), []).append(error.get("msg", "Invalid value"))
    return _envelope(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ActionResult.fail("Invalid input", field_errors),
    )


@app.exception_handler(Exception)
async def unexpected_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, ActionResult.fail(GENERIC_ERROR_MESSAGE))


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.SHOP_NAME} storefront")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down storefront")
    await ai_client.close()

# shop/main.py
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shop.api.routers import carts, catalog, customers, discounts, health, orders, payments
from shop.data.database import Base, init_db
from shop.domain.errors import ShopError
from shop.utils.logging import get_logger

logger = get_logger(__name__)

# every model has to be registered before create_all
init_db()
logger.info(f"Database ready, tables: {sorted(Base.metadata.tables.keys())}")

_LOCATION_KINDS = ("body", "query", "path", "header")


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    """ShopError subclasses carry their own HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "error_type": type(exc).__name__},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 with messages keyed by field, the shape the storefront forms read."""
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"] if part not in _LOCATION_KINDS)
        errors.setdefault(field or "request", []).append(err["msg"])

    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Shop Service",
        version="1.0.0",
    )

    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include routers
    app.include_router(health.router)
    app.include_router(catalog.router)
    app.include_router(customers.router)
    app.include_router(carts.router)
    app.include_router(discounts.router)
    app.include_router(orders.router)
    app.include_router(payments.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)

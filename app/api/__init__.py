# app/api/__init__.py
from fastapi import FastAPI

from app.api.routers import carts, checkout, coupons, health, orders, payments


def create_app(lifespan=None) -> FastAPI:
    app = FastAPI(
        title="Shop Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(coupons.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)
    app.include_router(payments.router)

    return app

# checkout/api/__init__.py
from fastapi import FastAPI
from checkout.api.routers import carts, orders, payments
from checkout.api.routers.health import router as health_router

def create_app(lifespan=None):
    app = FastAPI(title="Checkout Service", version="1.0.0", lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    return app

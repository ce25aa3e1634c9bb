# stk_payments/server/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from stk_payments.logging import configure
from .callbacks import router as callback_router
from .deps import close_payment_client
from .payments import payment_request_validation_handler, router as payments_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure()
    yield
    await close_payment_client()


def create_app() -> FastAPI:
    app = FastAPI(title="STK Payments", lifespan=lifespan)
    app.include_router(payments_router)
    app.include_router(callback_router)
    app.add_exception_handler(RequestValidationError, payment_request_validation_handler)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)

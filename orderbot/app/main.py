#!/usr/bin/env python3
"""
Main FastAPI application for the order interpretation service.
"""

from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..data.populate_db import populate_catalog
from ..schemas.io_models import (
    CancelResponse,
    CommitRequest,
    CommitResponse,
    InterpretRequest,
    ReloadResponse,
    StatsResponse,
)
from ..utils.errors import ProviderUnavailable
from ..utils.logger import get_logger
from .config import Config
from .controller import Controller

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_controller() -> Controller:
    """Process-wide controller; tests override this dependency."""
    return Controller.from_config()


@asynccontextmanager
async def lifespan(app: FastAPI):
    added = populate_catalog()
    logger.info("service starting (policy %s, %d catalog rows seeded)", Config.AUTOMATION_MODE, added)
    Config.debug_print()
    yield


# Initialize FastAPI app
app = FastAPI(
    title="Order Interpretation API",
    description="Turns free-text shop orders into structured, policy-checked order intents",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/interpret")
async def interpret(request: InterpretRequest, controller: Controller = Depends(get_controller)):
    """
    Interpret one utterance.

    Returns one of the result variants, tagged by ``kind``.
    """
    return await controller.interpret(request.text, request.transcription_confidence)


@app.post("/orders", response_model=CommitResponse)
async def commit_order(request: CommitRequest, controller: Controller = Depends(get_controller)):
    try:
        auto_approved = bool(request.verdict and request.verdict.auto)
        return await controller.commit(request.intent, auto_approved=auto_approved)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ProviderUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.post("/orders/{order_id}/cancel", response_model=CancelResponse)
async def cancel_order(order_id: str, controller: Controller = Depends(get_controller)):
    try:
        result = await controller.cancel(order_id)
    except ProviderUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail=f"no open order {order_id}")
    return result


@app.post("/cache/reload", response_model=ReloadResponse)
async def reload_cache(controller: Controller = Depends(get_controller)):
    return await controller.reload()


@app.get("/automation/stats", response_model=StatsResponse)
async def automation_stats(controller: Controller = Depends(get_controller)):
    return controller.stats()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

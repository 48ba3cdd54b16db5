from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from pokerledger.api.sessions import router as sessions_router
from pokerledger.api.settlement import router as settlement_router
from pokerledger.config import configure_logging
from pokerledger.runtime import init_db

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Poker Ledger API", lifespan=lifespan)
app.include_router(sessions_router)
app.include_router(settlement_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}

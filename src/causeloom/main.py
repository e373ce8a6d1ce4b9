"""Causeloom: causal hierarchy API for tabletop-RPG session transcripts.

Run with:  uvicorn causeloom.main:app --reload
"""

from __future__ import annotations

import logging

# Configure logging for all causeloom modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

from fastapi import FastAPI

from causeloom.api.causal import router as causal_router

app = FastAPI(
    title="Causeloom",
    description=(
        "Derives cause -> effect links from session transcripts, reinforces "
        "nearby links and composes them into beats, events and scenes."
    ),
    version="0.1.0",
)

# ── API routers ──────────────────────────────────────────────────────────
app.include_router(causal_router)


@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}

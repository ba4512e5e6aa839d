"""CircuitWiz — electrical analysis backend

Stateless backend responsibilities:
  1. Electrical flow (grid + wires → component states, live wires, grid)
  2. Pathway tracing and per-pathway circuit calculation
  3. Post-simulation electrical validation
  4. Component definition registry
  5. Wire gauge / colour edits and network merging

Persistence, firmware compilation and rendering live elsewhere.
"""

import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from circuitwiz.config import get_settings
from circuitwiz.routers import components, electrical, simulation, wires

VERSION = "0.1.0"


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    application = FastAPI(
        title=settings.app_name,
        version=VERSION,
        description=(
            "CircuitWiz — DC electrical analysis for grid circuit boards.\n\n"
            "Every endpoint is stateless: send the board, get the results."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        debug=settings.debug,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ─── Electrical engine (stateless) ───
    application.include_router(
        electrical.router, prefix="/api/electrical", tags=["Electrical"]
    )

    # ─── Full simulation pipeline ───
    application.include_router(
        simulation.router, prefix="/api/simulation", tags=["Simulation"]
    )

    # ─── Component library ───
    application.include_router(
        components.router, prefix="/api/components", tags=["Components"]
    )

    # ─── Wire editing ───
    application.include_router(wires.router, prefix="/api/wires", tags=["Wires"])

    @application.get("/health")
    async def health_check():
        return {"status": "ok", "service": "circuitwiz", "version": VERSION}

    return application


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "circuitwiz.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.debug,
    )

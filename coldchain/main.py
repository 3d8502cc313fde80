# coldchain/main.py
"""
Cold-Chain Transit Simulator - Main Application

Simulates a multi-carrier cold-chain network: shipping labels, package
transit through hub-and-spoke routes and temperature compliance of the
freezers the packages ride in.
"""

import random
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException

from .settings import settings
from .db.engine import check_connection, init_db
from .graph import GraphStore
from .logging import get_logger
from .notifications import ComplianceNotifier
from .api import packages_router
from simulation.config import load_network_config
from simulation.graph_seeder import GraphSeeder
from simulation.network import build_network

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Loads the network definition, creates the graph tables and seeds the
    network on first start.
    """
    # Startup
    logger.info("service_starting", database=settings.database_url)

    config = load_network_config()
    network = build_network(config)
    rng = random.Random(settings.simulation_seed)

    init_db()
    store = GraphStore()
    try:
        GraphSeeder(network, graph_store=store, rng=rng).seed_network()
    finally:
        store.close()

    monitoring = config.monitoring
    app.state.network = network
    app.state.rng = rng
    app.state.notifier = ComplianceNotifier(
        enabled=monitoring.enabled,
        service_url=monitoring.compliance_service,
        event_paths=monitoring.event_paths(),
    )
    logger.info("service_started", carriers=len(network.carriers), routes=len(network.routes))

    yield

    # Shutdown
    app.state.notifier.close()
    logger.info("service_stopped")


# Create FastAPI app
app = FastAPI(
    title="Cold-Chain Transit Simulator",
    description="""
    Simulated multi-carrier cold-chain logistics network.

    Key features:
    - Hub-and-spoke carriers with scheduled air and ground routes
    - Nested vehicles, ULDs and freezers per route
    - Package transit with inter-carrier transfers
    - Randomized temperature measurements and threshold violations
    - Compliance ledger notifications
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# Include API routers
app.include_router(packages_router)


# Health check endpoints
@app.get("/health")
async def health_check():
    """Basic health check."""
    return {"status": "ok", "service": "coldchain-transit-simulator"}


@app.get("/health/db")
async def db_health_check():
    """Database health check."""
    if check_connection():
        return {"status": "ok", "database": "connected"}
    raise HTTPException(status_code=503, detail="Database connection failed")


def run():
    """Run the server (entry point for CLI)."""
    import uvicorn
    uvicorn.run(
        "coldchain.main:app",
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    run()

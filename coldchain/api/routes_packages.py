# coldchain/api/routes_packages.py
"""
Package API routes.

Endpoints for creating shipping labels, simulating transit and reading
package timelines. The network model, notifier and random source are
created at startup and kept on app.state.
"""

import random
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..db.engine import get_session
from ..errors import ColdChainError, ConfigError, NotFoundError, PersistenceError
from ..graph import GraphStore
from ..logging import get_api_logger
from ..notifications import ComplianceNotifier
from simulation.network import NetworkModel
from simulation.shipping import PackageRequest, PackageResponse, ShippingService
from simulation.timeline import TimelineQuery
from simulation.transit import TransitSimulator

logger = get_api_logger()

router = APIRouter(prefix="/packages", tags=["packages"])


def get_network(request: Request) -> NetworkModel:
    network = getattr(request.app.state, "network", None)
    if network is None:
        raise HTTPException(status_code=503, detail="Network model is not loaded")
    return network


def get_notifier(request: Request) -> ComplianceNotifier:
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        notifier = ComplianceNotifier(enabled=False)
        request.app.state.notifier = notifier
    return notifier


def get_rng(request: Request) -> random.Random:
    rng = getattr(request.app.state, "rng", None)
    if rng is None:
        rng = random.Random()
        request.app.state.rng = rng
    return rng


def _http_error(error: ColdChainError) -> HTTPException:
    """Map simulator errors to HTTP status codes."""
    if isinstance(error, NotFoundError):
        status = 404
    elif isinstance(error, PersistenceError):
        status = 503
    elif isinstance(error, ConfigError):
        status = 500
    else:
        status = 400
    logger.warning("package_request_failed", status=status, error=str(error), kind=type(error).__name__)
    return HTTPException(status_code=status, detail=str(error))


@router.put("/create", response_model=PackageResponse)
def create_package(
    package_request: PackageRequest = Body(...),
    session: Session = Depends(get_session),
    network: NetworkModel = Depends(get_network),
    rng: random.Random = Depends(get_rng),
) -> PackageResponse:
    """
    Create a shipping label.

    Resolves the origin and destination offices from the address states,
    estimates pickup and delivery times and stores the package.
    """
    service = ShippingService(GraphStore(session), network, rng)
    try:
        return service.create_shipping_label(package_request)
    except ColdChainError as e:
        raise _http_error(e) from e


@router.put("/pickup")
def pickup_package(
    uid: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
    network: NetworkModel = Depends(get_network),
    notifier: ComplianceNotifier = Depends(get_notifier),
    rng: random.Random = Depends(get_rng),
) -> Dict[str, Any]:
    """
    Simulate the transit of a package from pickup to delivery.

    Returns:
        Final state, visited states, containment legs and reported violations
    """
    simulator = TransitSimulator(GraphStore(session), network, notifier, rng)
    try:
        result = simulator.pickup_package(uid)
    except ColdChainError as e:
        raise _http_error(e) from e
    return result.to_dict()


@router.get("/timeline")
def get_timeline(
    uid: str = Query(..., min_length=1),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Transit events and route details of a package."""
    try:
        return TimelineQuery(GraphStore(session)).package_timeline(uid)
    except ColdChainError as e:
        raise _http_error(e) from e

# coldchain/notifications/sink.py
"""
Compliance notification sink.

Posts custody and temperature events to an external compliance ledger
service at "<service>/<eventType>", authenticated with the actor id as the
basic-auth user. Delivery is fire-and-forget: failures are logged and
reported through the returned status, never raised to the simulation.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import httpx
from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
)

from ..errors import NotificationError
from ..logging import get_logger
from ..settings import settings
from .events import PackageTransaction, TemperatureUpdate, format_event_time

logger = get_logger(__name__)

DISABLED_STATUS = "Monitoring disabled"
ERROR_STATUS = "Error response"

DEFAULT_WAIT_MAX = 5

# Event type -> service path; overridden per deployment by the network config
DEFAULT_EVENT_PATHS: Dict[str, str] = {
    "pickup": "pickup",
    "transfer": "transfer",
    "transferAck": "transferAck",
    "delivery": "deliver",
    "updateTemperature": "updateTemperature",
}


def _is_transient(error: BaseException) -> bool:
    """Timeouts, connection errors and 5xx responses are worth retrying."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, (httpx.TimeoutException, httpx.TransportError))


def _status_line(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


class ComplianceNotifier:
    """
    Client for the compliance notification sink.

    Usage:
        notifier = ComplianceNotifier(enabled=True, service_url="http://ledger:7081/api/v1")
        body, status = notifier.post_event("carrier-user", "pickup", {"uid": "..."})
    """

    def __init__(
        self,
        enabled: bool = False,
        service_url: str = "",
        event_paths: Optional[Dict[str, str]] = None,
        timeout_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_wait_seconds: float = 1.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize notifier.

        Args:
            enabled: When False, events are logged and never sent
            service_url: Base URL of the compliance service
            event_paths: Event type to service path mapping
            timeout_seconds: Per-request timeout (defaults to settings)
            max_attempts: Attempts per event including the first (defaults to settings)
            retry_wait_seconds: Multiplier for exponential backoff between attempts
            client: Preconfigured httpx client (tests inject a MockTransport)
        """
        self.enabled = enabled
        self.service_url = service_url.rstrip("/")
        self.event_paths = {**DEFAULT_EVENT_PATHS, **(event_paths or {})}
        self.timeout = timeout_seconds or settings.compliance_timeout_seconds
        self.max_attempts = max(1, max_attempts or settings.compliance_max_attempts)
        self.retry_wait_seconds = retry_wait_seconds
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None

    def post_event(
        self,
        actor_id: str,
        event_type: str,
        payload: Dict[str, Any],
    ) -> Tuple[Optional[str], str]:
        """
        Post one event to the sink.

        Args:
            actor_id: Compliance user of the acting carrier
            event_type: Event type key (pickup, transfer, ...) or a raw service path
            payload: JSON-serializable event body

        Returns:
            (response body or None, status line)
        """
        path = self.event_paths.get(event_type, event_type)

        if not self.enabled:
            logger.info(
                "compliance_event_skipped",
                actor=actor_id,
                event_type=path,
                payload=json.dumps(payload, sort_keys=True),
            )
            return None, DISABLED_STATUS

        url = f"{self.service_url}/{path}"
        try:
            response = self._send_with_retry(url, actor_id, payload)
        except NotificationError as e:
            logger.warning(
                "compliance_event_failed",
                actor=actor_id,
                url=url,
                status=e.status,
                error=str(e),
            )
            return None, e.status or ERROR_STATUS

        status = _status_line(response)
        logger.info("compliance_event_sent", actor=actor_id, url=url, status=status)
        return response.text, status

    def _send_with_retry(self, url: str, actor_id: str, payload: Dict[str, Any]) -> httpx.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=DEFAULT_WAIT_MAX),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    response = self.client.post(
                        url,
                        json=payload,
                        auth=(actor_id, ""),
                        timeout=self.timeout,
                    )
                    response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            raise NotificationError(
                f"compliance service rejected {url}",
                status=_status_line(e.response),
            ) from e
        except httpx.HTTPError as e:
            raise NotificationError(f"compliance service unreachable at {url}: {e}") from e

    # ============================================================
    # EVENT HELPERS
    # ============================================================

    def notify_pickup(
        self,
        actor_id: str,
        uid: str,
        pickup_time: datetime,
        latitude: float,
        longitude: float,
        package_detail: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Optional[str], str]:
        """Report that a carrier picked up a package from the sender."""
        event = PackageTransaction(
            uid=uid,
            eventTime=format_event_time(pickup_time),
            latitude=latitude,
            longitude=longitude,
            packageDetail=json.dumps(package_detail, sort_keys=True) if package_detail else None,
        )
        return self.post_event(actor_id, "pickup", event.to_dict())

    def notify_transfer(
        self,
        actor_id: str,
        uid: str,
        to_carrier: str,
        transfer_time: datetime,
        latitude: float,
        longitude: float,
    ) -> Tuple[Optional[str], str]:
        """Report the handoff of a package to another carrier."""
        event = PackageTransaction(
            uid=uid,
            eventTime=format_event_time(transfer_time),
            latitude=latitude,
            longitude=longitude,
            toCarrier=to_carrier,
        )
        return self.post_event(actor_id, "transfer", event.to_dict())

    def notify_transfer_ack(
        self,
        actor_id: str,
        uid: str,
        from_carrier: str,
        ack_time: datetime,
        latitude: float,
        longitude: float,
    ) -> Tuple[Optional[str], str]:
        """Report that the receiving carrier acknowledged a handoff."""
        event = PackageTransaction(
            uid=uid,
            eventTime=format_event_time(ack_time),
            latitude=latitude,
            longitude=longitude,
            carrier=from_carrier,
        )
        return self.post_event(actor_id, "transferAck", event.to_dict())

    def notify_delivery(
        self,
        actor_id: str,
        uid: str,
        delivery_time: datetime,
        latitude: float,
        longitude: float,
    ) -> Tuple[Optional[str], str]:
        event = PackageTransaction(
            uid=uid,
            eventTime=format_event_time(delivery_time),
            latitude=latitude,
            longitude=longitude,
        )
        return self.post_event(actor_id, "delivery", event.to_dict())

    def notify_temperature_update(
        self,
        actor_id: str,
        uid: str,
        container_id: str,
        period_start: datetime,
        period_end: datetime,
        min_value: float,
        max_value: float,
        in_violation: bool,
    ) -> Tuple[Optional[str], str]:
        event = TemperatureUpdate(
            uid=uid,
            containerID=container_id,
            periodStart=format_event_time(period_start),
            eventTime=format_event_time(period_end),
            minValue=min_value,
            maxValue=max_value,
            inViolation=in_violation,
        )
        return self.post_event(actor_id, "updateTemperature", event.to_dict())

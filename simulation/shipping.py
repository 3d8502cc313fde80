# simulation/shipping.py
"""
Shipping label creation.

A label request names the sender and recipient addresses and the package
content. Creating the label:
1. Resolves the origin and destination offices by state
2. Fills in random GPS coordinates near the office when an address has none
3. Derives content-hash ids for the package and addresses
4. Estimates pickup and delivery times
5. Upserts Package, Address and Content nodes with sender/recipient/contains edges

The label payload is stored as a JSON document on the package; rendering it
as a 2D barcode is left to an external codec.
"""

import json
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from coldchain.errors import PackageNotFoundError
from coldchain.graph import GraphQuery, GraphStore, Node, as_double, as_string, as_time, to_epoch
from coldchain.hashing import content_id
from coldchain.logging import get_logger

from .network import NetworkModel, Office
from .occurrences import Clock, utc_now
from .schedule import estimate_pud_time, local_delay_hours, random_gps_location

logger = get_logger(__name__)


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AddressRequest(_RequestModel):
    street: str = ""
    city: str = ""
    state_province: str = Field(default="", alias="state-province")
    postal_cd: str = Field(default="", alias="postal-code")
    country: str = ""
    latitude: float = 0.0
    longitude: float = 0.0


class ContentRequest(_RequestModel):
    product: str = ""
    description: str = ""
    producer: str = ""
    item_count: int = Field(default=0, alias="count")
    start_lot_number: str = Field(default="", alias="start-lot-number")
    end_lot_number: str = Field(default="", alias="end-lot-number")


class PackageRequest(_RequestModel):
    """Shipping label request."""
    uid: Optional[str] = None
    handling_cd: str = Field(default="", alias="handling")
    height: float = 0.0
    width: float = 0.0
    depth: float = 0.0
    weight: float = 0.0
    dry_ice_weight: float = Field(default=0.0, alias="dry-ice-weight")
    sender: str = ""
    from_address: AddressRequest = Field(alias="from")
    recipient: str = ""
    to_address: AddressRequest = Field(alias="to")
    content: ContentRequest = Field(default_factory=ContentRequest)


class PackageResponse(_RequestModel):
    """Data of a newly created shipping label."""
    uid: str
    handling_cd: str = Field(alias="handling")
    product: str
    carrier: str
    created: str
    estimated_pickup: str = Field(alias="estimated-pickup")
    estimated_delivery: str = Field(alias="estimated-delivery")
    sender: str
    from_address: AddressRequest = Field(alias="from")
    recipient: str
    to_address: AddressRequest = Field(alias="to")


@dataclass
class Address:
    uid: str
    street: str
    city: str
    state_province: str
    postal_cd: str
    country: str
    latitude: float
    longitude: float

    @classmethod
    def from_request(cls, request: AddressRequest) -> "Address":
        address = cls(
            uid="",
            street=request.street,
            city=request.city,
            state_province=request.state_province,
            postal_cd=request.postal_cd,
            country=request.country,
            latitude=request.latitude,
            longitude=request.longitude,
        )
        address.uid = content_id(address.label_fields())
        return address

    @classmethod
    def from_node(cls, node: Node) -> "Address":
        return cls(
            uid=as_string(node, "uid"),
            street=as_string(node, "street"),
            city=as_string(node, "city"),
            state_province=as_string(node, "stateProvince"),
            postal_cd=as_string(node, "postalCd"),
            country=as_string(node, "country"),
            latitude=as_double(node, "latitude"),
            longitude=as_double(node, "longitude"),
        )

    def label_fields(self) -> Dict[str, Any]:
        return {
            "street": self.street,
            "city": self.city,
            "state-province": self.state_province,
            "postal-code": self.postal_cd,
            "country": self.country,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    def to_attrs(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "street": self.street,
            "city": self.city,
            "stateProvince": self.state_province,
            "postalCd": self.postal_cd,
            "country": self.country,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    def to_request(self) -> AddressRequest:
        return AddressRequest.model_validate(self.label_fields())

    @property
    def location(self) -> str:
        return f"{self.street}, {self.city}, {self.state_province}"


@dataclass
class Package:
    uid: str
    handling_cd: str
    product: str
    carrier: str
    sender: str
    from_address: Address
    recipient: str
    to_address: Address
    created_time: datetime
    est_pickup_time: datetime
    est_delivery_time: datetime
    height: float = 0.0
    width: float = 0.0
    depth: float = 0.0
    weight: float = 0.0
    dry_ice_weight: float = 0.0
    label_payload: Dict[str, Any] = field(default_factory=dict)

    def to_attrs(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "labelPayload": json.dumps(self.label_payload, sort_keys=True),
            "handlingCd": self.handling_cd,
            "product": self.product,
            "height": self.height,
            "width": self.width,
            "depth": self.depth,
            "weight": self.weight,
            "dryIceWeight": self.dry_ice_weight,
            "carrier": self.carrier,
            "createdTime": to_epoch(self.created_time),
            "estPickupTime": to_epoch(self.est_pickup_time),
            "estDeliveryTime": to_epoch(self.est_delivery_time),
        }

    def to_response(self) -> PackageResponse:
        return PackageResponse(
            uid=self.uid,
            handling_cd=self.handling_cd,
            product=self.product,
            carrier=self.carrier,
            created=self.created_time.isoformat(timespec="seconds"),
            estimated_pickup=self.est_pickup_time.isoformat(timespec="seconds"),
            estimated_delivery=self.est_delivery_time.isoformat(timespec="seconds"),
            sender=self.sender,
            from_address=self.from_address.to_request(),
            recipient=self.recipient,
            to_address=self.to_address.to_request(),
        )


def _locate(address: Address, office: Office, rng: random.Random):
    # Addresses without coordinates are placed near the serving office
    if address.latitude == 0 and address.longitude == 0:
        address.latitude, address.longitude = random_gps_location(office, rng)
        address.uid = content_id(address.label_fields())


def initialize_package(
    request: PackageRequest,
    network: NetworkModel,
    rng: random.Random,
    now: Optional[datetime] = None,
) -> Package:
    """
    Build a package from a label request.

    Raises:
        OfficeNotFoundError: If no carrier serves the sender or recipient state
    """
    now = now or utc_now()

    origin = network.office_by_state(request.from_address.state_province)
    from_address = Address.from_request(request.from_address)
    _locate(from_address, origin, rng)
    pickup_delay = local_delay_hours(from_address.latitude, from_address.longitude, origin)

    dest = network.office_by_state(request.to_address.state_province)
    to_address = Address.from_request(request.to_address)
    _locate(to_address, dest, rng)
    delivery_delay = local_delay_hours(to_address.latitude, to_address.longitude, dest)

    pickup_time = estimate_pud_time(origin.gmt_offset, pickup_delay, now=now)
    delivery_time = estimate_pud_time(dest.gmt_offset, delivery_delay, now=now)
    # Delivery is planned at least a day after the pickup day
    days = (pickup_time.date() - delivery_time.astimezone(pickup_time.tzinfo).date()).days + 1
    if days > 0:
        delivery_time = delivery_time + timedelta(days=days)

    created = now.astimezone(pickup_time.tzinfo)
    label_payload = {
        "handling": request.handling_cd,
        "carrier": origin.carrier,
        "created": created.isoformat(timespec="seconds"),
        "sender": request.sender,
        "from": from_address.label_fields(),
        "recipient": request.recipient,
        "to": to_address.label_fields(),
    }
    uid = request.uid or content_id(label_payload)
    label_payload["uid"] = uid

    return Package(
        uid=uid,
        handling_cd=request.handling_cd,
        product=request.content.product,
        carrier=origin.carrier,
        sender=request.sender,
        from_address=from_address,
        recipient=request.recipient,
        to_address=to_address,
        created_time=created,
        est_pickup_time=pickup_time,
        est_delivery_time=delivery_time,
        height=request.height,
        width=request.width,
        depth=request.depth,
        weight=request.weight,
        dry_ice_weight=request.dry_ice_weight,
        label_payload=label_payload,
    )


class ShippingService:
    """Creates shipping labels and reads packages back from the graph."""

    def __init__(
        self,
        store: GraphStore,
        network: NetworkModel,
        rng: Optional[random.Random] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.network = network
        self.rng = rng or random.Random()
        self.clock = clock

    def create_shipping_label(self, request: PackageRequest) -> PackageResponse:
        """
        Create a package and its label.

        Re-submitting a request that hashes to an existing package returns
        the label without creating duplicate nodes.
        """
        package = initialize_package(request, self.network, self.rng, now=self.clock())
        node = self._upsert_package(package)
        self._add_content(node, package.uid, request.content)

        logger.info(
            "shipping_label_created",
            uid=package.uid,
            carrier=package.carrier,
            handling=package.handling_cd,
            product=package.product,
        )
        return package.to_response()

    def _upsert_package(self, package: Package) -> Node:
        existing = self.store.get_node_by_key("Package", {"uid": package.uid})
        if existing is not None:
            logger.info("package_exists", uid=package.uid)
            return existing

        node = self.store.create_node("Package", package.to_attrs())
        sender = self._upsert_address(package.from_address)
        self.store.create_edge("sender", node, sender, {"name": package.sender})
        recipient = self._upsert_address(package.to_address)
        self.store.create_edge("recipient", node, recipient, {"name": package.recipient})
        return node

    def _upsert_address(self, address: Address) -> Node:
        existing = self.store.get_node_by_key("Address", {"uid": address.uid})
        if existing is not None:
            return existing
        return self.store.create_node("Address", address.to_attrs())

    def _add_content(self, package_node: Node, package_uid: str, content: ContentRequest):
        uid = f"{package_uid}-1"
        if self.store.get_node_by_key("Content", {"uid": uid}) is not None:
            return
        node = self.store.create_node("Content", {
            "uid": uid,
            "product": content.product,
            "description": content.description,
            "producer": content.producer,
            "itemCount": content.item_count,
            "startLotNumber": content.start_lot_number,
            "endLotNumber": content.end_lot_number,
        })
        self.store.create_edge("contains", package_node, node)

    # ============================================================
    # READ BACK
    # ============================================================

    def get_package_node(self, uid: str) -> Node:
        node = self.store.get_node_by_key("Package", {"uid": uid})
        if node is None:
            raise PackageNotFoundError(uid)
        return node

    def get_address(self, uid: str, role: str) -> Address:
        """Sender or recipient address of a package."""
        nodes = self.store.query(GraphQuery.nodes("Package", uid=uid).out(role))
        if not nodes:
            raise PackageNotFoundError(uid)
        return Address.from_node(nodes[0])

    def get_package(self, uid: str) -> Package:
        """
        Load a package with its addresses.

        Raises:
            PackageNotFoundError: If the package or its addresses are missing
        """
        node = self.get_package_node(uid)
        names = {}
        for role in ("sender", "recipient"):
            values = self.store.query(GraphQuery.nodes("Package", uid=uid).out_edges(role).values("name"))
            names[role] = values[0] if values else ""

        payload = as_string(node, "labelPayload")
        return Package(
            uid=uid,
            handling_cd=as_string(node, "handlingCd"),
            product=as_string(node, "product"),
            carrier=as_string(node, "carrier"),
            sender=names["sender"],
            from_address=self.get_address(uid, "sender"),
            recipient=names["recipient"],
            to_address=self.get_address(uid, "recipient"),
            created_time=as_time(node, "createdTime"),
            est_pickup_time=as_time(node, "estPickupTime"),
            est_delivery_time=as_time(node, "estDeliveryTime"),
            height=as_double(node, "height"),
            width=as_double(node, "width"),
            depth=as_double(node, "depth"),
            weight=as_double(node, "weight"),
            dry_ice_weight=as_double(node, "dryIceWeight"),
            label_payload=json.loads(payload) if payload else {},
        )

    def get_content(self, uid: str) -> Optional[Dict[str, Any]]:
        nodes = self.store.query(GraphQuery.nodes("Package", uid=uid).out("contains"))
        if not nodes:
            return None
        content = nodes[0]
        return {
            "product": as_string(content, "product"),
            "description": as_string(content, "description"),
            "producer": as_string(content, "producer"),
            "count": int(as_double(content, "itemCount")),
            "start-lot-number": as_string(content, "startLotNumber"),
            "end-lot-number": as_string(content, "endLotNumber"),
        }

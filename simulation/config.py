# simulation/config.py
"""
Network definition loaded from JSON.

Example:
    {
      "carriers": {
        "SLS": {
          "description": "South Logistics Services",
          "complianceUser": "sls-user",
          "offices": {
            "DEN": {"hub": true, "description": "Denver, CO", "gmtOffset": "-07:00",
                    "latitude": 39.7392, "longitude": -104.9903}
          }
        }
      },
      "products": {
        "PfizerVaccine": {"handlingCd": "P", "minValue": -80, "maxValue": -60}
      },
      "monitoring": {"enabled": false, "violationRate": 0.5, ...}
    }
"""

from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from coldchain.errors import ConfigError
from coldchain.logging import get_logger
from coldchain.settings import settings

logger = get_logger(__name__)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OfficeConfig(_ConfigModel):
    """One office of a carrier, keyed by IATA code in the carrier's offices map."""
    hub: bool = False
    description: str = ""
    gmt_offset: str = Field(default="", alias="gmtOffset")
    latitude: float = 0.0
    longitude: float = 0.0


class CarrierConfig(_ConfigModel):
    description: str = ""
    compliance_user: str = Field(default="", alias="complianceUser")
    offices: Dict[str, OfficeConfig] = Field(default_factory=dict)


class ProductConfig(_ConfigModel):
    """Temperature or weight tolerance of a monitored product."""
    handling_cd: str = Field(alias="handlingCd")
    min_value: float = Field(alias="minValue")
    max_value: float = Field(alias="maxValue")

    @model_validator(mode="after")
    def check_band(self) -> "ProductConfig":
        if self.min_value > self.max_value:
            raise ValueError(
                f"minValue {self.min_value} is above maxValue {self.max_value}"
            )
        return self


class MonitoringConfig(_ConfigModel):
    """Compliance sink settings and violation injection rate."""
    enabled: bool = False
    violation_rate: float = Field(default=0.0, alias="violationRate", ge=0.0, le=1.0)
    compliance_user: str = Field(default="", alias="complianceUser")
    compliance_service: str = Field(default="", alias="complianceService")
    pickup: str = "pickup"
    transfer: str = "transfer"
    transfer_ack: str = Field(default="transferAck", alias="transferAck")
    deliver: str = "deliver"
    update_temperature: str = Field(default="updateTemperature", alias="updateTemperature")

    def event_paths(self) -> Dict[str, str]:
        """Event type -> service path for the notifier."""
        return {
            "pickup": self.pickup,
            "transfer": self.transfer,
            "transferAck": self.transfer_ack,
            "delivery": self.deliver,
            "updateTemperature": self.update_temperature,
        }


class NetworkConfig(_ConfigModel):
    carriers: Dict[str, CarrierConfig] = Field(default_factory=dict)
    products: Dict[str, ProductConfig] = Field(default_factory=dict)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)


def parse_network_config(data: Union[str, bytes, dict]) -> NetworkConfig:
    """
    Validate a network definition.

    Args:
        data: JSON text or an already-decoded dict

    Returns:
        Validated NetworkConfig

    Raises:
        ConfigError: If the document is not valid JSON or fails validation
    """
    try:
        if isinstance(data, dict):
            return NetworkConfig.model_validate(data)
        return NetworkConfig.model_validate_json(data)
    except ValidationError as e:
        raise ConfigError(f"invalid network config: {e}") from e


def load_network_config(path: Optional[Union[str, Path]] = None) -> NetworkConfig:
    """
    Load and validate the network definition file.

    Args:
        path: JSON file path (defaults to NETWORK_CONFIG)

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    if path is None:
        path = settings.network_config

    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read network config {path}: {e}") from e

    config = parse_network_config(text)
    logger.info(
        "network_config_loaded",
        path=str(path),
        carriers=len(config.carriers),
        products=len(config.products),
        monitoring=config.monitoring.enabled,
    )
    return config

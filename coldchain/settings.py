# coldchain/settings.py
"""
Application settings.
"""

import os
from dataclasses import dataclass
from typing import Optional

# Load .env file
from dotenv import load_dotenv
load_dotenv()


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass
class Settings:
    """Application configuration."""

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./coldchain.db")

    # Network definition (carriers, offices, products, monitoring)
    network_config: str = os.getenv("NETWORK_CONFIG", "./config/network.json")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "true").lower() == "true"

    # Compliance notification sink
    compliance_timeout_seconds: float = float(os.getenv("COMPLIANCE_TIMEOUT", "5"))
    compliance_max_attempts: int = int(os.getenv("COMPLIANCE_MAX_ATTEMPTS", "2"))

    # Simulation
    simulation_seed: Optional[int] = _optional_int(os.getenv("SIMULATION_SEED"))

    # API settings
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "7980"))


# Global settings instance
settings = Settings()

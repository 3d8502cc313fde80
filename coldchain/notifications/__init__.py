# Notifications module - compliance ledger sink
from .events import PackageTransaction, TemperatureUpdate, format_event_time
from .sink import ComplianceNotifier, DISABLED_STATUS, ERROR_STATUS

__all__ = [
    "ComplianceNotifier",
    "PackageTransaction",
    "TemperatureUpdate",
    "format_event_time",
    "DISABLED_STATUS",
    "ERROR_STATUS",
]

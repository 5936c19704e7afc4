"""Best-effort key/value publication of controller state."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)

class TelemetrySink(ABC):
    @abstractmethod
    def publish(self, key: str, value: Any) -> None:
        """Publishes one value. May raise, callers go through publish_all."""

class LoggingTelemetrySink(TelemetrySink):
    def publish(self, key: str, value: Any) -> None:
        logger.debug(f"{key} = {value}")

class DictTelemetrySink(TelemetrySink):
    """Keeps the latest value of every key, e.g. for a dashboard server."""
    def __init__(self):
        self.values: Dict[str, Any] = {}

    def publish(self, key: str, value: Any) -> None:
        self.values[key] = value

def publish_all(sink: TelemetrySink, values: Mapping[str, Any]) -> None:
    """
    Publishes every value, logging instead of raising when the sink fails.
    A failing key does not keep the remaining keys from being published.
    """
    if sink is None:
        return
    for key, value in values.items():
        try:
            sink.publish(key, value)
        except Exception as e:
            logger.warning(f"Telemetry publish of '{key}' failed: {e}")

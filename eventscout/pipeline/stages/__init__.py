"""Pipeline stages: discover → prioritize → parse → extract → publish."""

from .discover import DiscoveryResult, EventDiscoverer
from .extract import EventExtractor
from .parse import EventParser
from .prioritize import EventPrioritizer
from .publish import EventPublisher

__all__ = [
    "DiscoveryResult",
    "EventDiscoverer",
    "EventPrioritizer",
    "EventParser",
    "EventExtractor",
    "EventPublisher",
]

"""mdgrab configuration, record and event models."""

from .config import (
    AuthConfig,
    BlockPolicy,
    BrowserConfig,
    ConversionConfig,
    HarvestConfig,
    MdgrabConfig,
    NetworkConfig,
    OutputConfig,
    TableHeaderPolicy,
)
from .events import EventEmitter, EventType, HarvestStats, ProgressEvent
from .platforms import PLATFORMS, FieldRule, ListRules, Platform, PlatformProfile, get_platform
from .records import DEFAULT_AUTHOR, DEFAULT_TITLE, BlockClassification, ContentRecord, ListEntry

__all__ = [
    # Config
    "AuthConfig",
    "BlockPolicy",
    "BrowserConfig",
    "ConversionConfig",
    "HarvestConfig",
    "MdgrabConfig",
    "NetworkConfig",
    "OutputConfig",
    "TableHeaderPolicy",
    # Events
    "EventEmitter",
    "EventType",
    "HarvestStats",
    "ProgressEvent",
    # Platforms
    "PLATFORMS",
    "FieldRule",
    "ListRules",
    "Platform",
    "PlatformProfile",
    "get_platform",
    # Records
    "DEFAULT_AUTHOR",
    "DEFAULT_TITLE",
    "BlockClassification",
    "ContentRecord",
    "ListEntry",
]

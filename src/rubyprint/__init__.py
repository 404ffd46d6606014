# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structural fingerprints, change reports and file relationships for Ruby projects."""

from .analyzers import FingerprintBuilder, create_adapter
from .cache import CacheEntry, FingerprintCache
from .config import Config, ConfigurationError
from .engine import AnalysisEngine, build_engine
from .events import AnalysisEvent, EventBus, EventType
from .fingerprint_diff import DEFAULT_WEIGHTS, NO_CHANGES, DiffWeights, FingerprintDiff, MethodChange
from .models import Fingerprint, Method, ParameterSignature, PublicInterface
from .pond import Pond
from .relationship_graph import RelationshipEdge, RelationshipGraph
from .source_files import SourceFile

__version__ = "0.1.0"

__all__ = [
    "AnalysisEngine",
    "AnalysisEvent",
    "CacheEntry",
    "Config",
    "ConfigurationError",
    "DEFAULT_WEIGHTS",
    "DiffWeights",
    "EventBus",
    "EventType",
    "Fingerprint",
    "FingerprintBuilder",
    "FingerprintCache",
    "FingerprintDiff",
    "Method",
    "MethodChange",
    "NO_CHANGES",
    "ParameterSignature",
    "Pond",
    "PublicInterface",
    "RelationshipEdge",
    "RelationshipGraph",
    "SourceFile",
    "build_engine",
    "create_adapter",
]

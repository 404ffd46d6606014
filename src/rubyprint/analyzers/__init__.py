# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Ruby analysis: parsing and fingerprint extraction.

Components:
- ParseAdapter / TreeSitterAdapter / StrictAdapter: source text to SyntaxNode trees
- NodeVisitor: exhaustive per-NodeKind dispatch
- FingerprintBuilder: single-pass extraction of a Fingerprint

Layers:
- Layer 1: Parse adapters (wrap tree-sitter, normalize its tree)
- Layer 2: Visitor (one handler per node kind)
- Layer 3: Fingerprint builder (records declarations in source order)
"""

from rubyprint.analyzers.fingerprint_builder import FingerprintBuilder
from rubyprint.analyzers.parse_adapter import (
    ParseAdapter,
    StrictAdapter,
    TreeSitterAdapter,
    create_adapter,
)
from rubyprint.analyzers.syntax import NodeKind, ParseResult, SyntaxNode
from rubyprint.analyzers.visitor import NodeVisitor

__all__ = [
    "FingerprintBuilder",
    "NodeKind",
    "NodeVisitor",
    "ParseAdapter",
    "ParseResult",
    "StrictAdapter",
    "SyntaxNode",
    "TreeSitterAdapter",
    "create_adapter",
]

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structural comparison of two Fingerprints.

FingerprintDiff holds only its two inputs. Every change list, the magnitude
and the severity are recomputed from them on access, so a diff can never
disagree with the Fingerprints it describes.

Comparison rules:
- Methods: matched by name (first definition of a name wins); a method is
  changed when its signature text or visibility differs
- Attributes and mixins: set difference by name
- Constants: set difference of external references

Magnitude is a weighted count of changes; severity bands it into
trivial / minor / significant / major. Weights and band limits live in
DiffWeights so callers can tune them.
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

from rubyprint.models import Attribute, Fingerprint, Method, Mixin

logger = logging.getLogger(__name__)

NO_CHANGES = "(no structural changes)"


class Severity:
    """Severity labels."""

    TRIVIAL = "trivial"
    MINOR = "minor"
    SIGNIFICANT = "significant"
    MAJOR = "major"


@dataclass(frozen=True)
class DiffWeights:
    """Magnitude weights per change kind and severity band limits.

    Severity bands: 0 is trivial, 1..minor_max is minor,
    minor_max+1..significant_max is significant, anything above is major.
    """

    methods_added: int = 3
    methods_removed: int = 3
    methods_changed: int = 2
    attributes_added: int = 2
    attributes_removed: int = 2
    constants_added: int = 1
    constants_removed: int = 1
    mixins_added: int = 2
    mixins_removed: int = 0
    minor_max: int = 3
    significant_max: int = 8

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"DiffWeights.{f.name} must be a non-negative integer, got {value!r}")
        if self.minor_max > self.significant_max:
            raise ValueError(
                f"minor_max ({self.minor_max}) must not exceed significant_max ({self.significant_max})"
            )

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, Any]) -> "DiffWeights":
        """Build weights from a partial mapping of field overrides.

        Raises:
            ValueError: On unknown field names or invalid values.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown DiffWeights fields: {', '.join(unknown)}")
        return cls(**dict(overrides))

    def severity(self, magnitude: int) -> str:
        if magnitude == 0:
            return Severity.TRIVIAL
        if magnitude <= self.minor_max:
            return Severity.MINOR
        if magnitude <= self.significant_max:
            return Severity.SIGNIFICANT
        return Severity.MAJOR


DEFAULT_WEIGHTS = DiffWeights()


@dataclass(frozen=True)
class MethodChange:
    """A method present in both Fingerprints whose signature or visibility differs."""

    name: str
    before: Method
    after: Method

    @property
    def signature_changed(self) -> bool:
        return self.before.signature_text != self.after.signature_text

    @property
    def visibility_changed(self) -> bool:
        return self.before.visibility != self.after.visibility

    def __str__(self) -> str:
        parts: List[str] = []
        if self.signature_changed:
            parts.append(f"signature: {self.before.signature_text} -> {self.after.signature_text}")
        if self.visibility_changed:
            parts.append(f"visibility: {self.before.visibility} -> {self.after.visibility}")
        return f"{self.name}: {', '.join(parts)}"


class FingerprintDiff:
    """Itemized, scored change report between two Fingerprints.

    Usage:
        diff = FingerprintDiff(before=old_fingerprint, after=new_fingerprint)
        if not diff.is_trivial:
            print(diff.describe())
    """

    def __init__(self, before: Fingerprint, after: Fingerprint, weights: Optional[DiffWeights] = None):
        self.before = before
        self.after = after
        self.weights = weights or DEFAULT_WEIGHTS

    # -- methods -----------------------------------------------------------

    @property
    def methods_added(self) -> Tuple[Method, ...]:
        before_names = {m.name for m in self.before.methods}
        return tuple(m for m in _first_by_name(self.after.methods) if m.name not in before_names)

    @property
    def methods_removed(self) -> Tuple[Method, ...]:
        after_names = {m.name for m in self.after.methods}
        return tuple(m for m in _first_by_name(self.before.methods) if m.name not in after_names)

    @property
    def methods_changed(self) -> Tuple[MethodChange, ...]:
        after_by_name = {m.name: m for m in reversed(self.after.methods)}
        changes: List[MethodChange] = []
        for before_method in _first_by_name(self.before.methods):
            after_method = after_by_name.get(before_method.name)
            if after_method is None:
                continue
            change = MethodChange(name=before_method.name, before=before_method, after=after_method)
            if change.signature_changed or change.visibility_changed:
                changes.append(change)
        return tuple(changes)

    # -- attributes --------------------------------------------------------

    @property
    def attributes_added(self) -> Tuple[Attribute, ...]:
        before_names = {a.name for a in self.before.attributes}
        return tuple(a for a in self.after.attributes if a.name not in before_names)

    @property
    def attributes_removed(self) -> Tuple[Attribute, ...]:
        after_names = {a.name for a in self.after.attributes}
        return tuple(a for a in self.before.attributes if a.name not in after_names)

    # -- mixins ------------------------------------------------------------

    @property
    def mixins_added(self) -> Tuple[Mixin, ...]:
        before_names = set(self.before.mixin_names)
        return tuple(m for m in self.after.mixins if m.name not in before_names)

    @property
    def mixins_removed(self) -> Tuple[Mixin, ...]:
        after_names = set(self.after.mixin_names)
        return tuple(m for m in self.before.mixins if m.name not in after_names)

    # -- constants ---------------------------------------------------------

    @property
    def constants_added(self) -> Tuple[str, ...]:
        before_refs = set(self.before.external_references())
        return tuple(c for c in self.after.external_references() if c not in before_refs)

    @property
    def constants_removed(self) -> Tuple[str, ...]:
        after_refs = set(self.after.external_references())
        return tuple(c for c in self.before.external_references() if c not in after_refs)

    # -- scoring -----------------------------------------------------------

    def counts(self) -> Dict[str, int]:
        """Number of changes per kind, keyed like the DiffWeights fields."""
        return {
            "methods_added": len(self.methods_added),
            "methods_removed": len(self.methods_removed),
            "methods_changed": len(self.methods_changed),
            "attributes_added": len(self.attributes_added),
            "attributes_removed": len(self.attributes_removed),
            "constants_added": len(self.constants_added),
            "constants_removed": len(self.constants_removed),
            "mixins_added": len(self.mixins_added),
            "mixins_removed": len(self.mixins_removed),
        }

    @property
    def magnitude(self) -> int:
        return sum(count * getattr(self.weights, kind) for kind, count in self.counts().items())

    @property
    def severity(self) -> str:
        return self.weights.severity(self.magnitude)

    @property
    def is_trivial(self) -> bool:
        return self.magnitude == 0

    def describe(self) -> str:
        """Line-per-change report ending with the magnitude line.

        Returns NO_CHANGES when the magnitude is zero.
        """
        magnitude = self.magnitude
        if magnitude == 0:
            return NO_CHANGES

        lines: List[str] = []
        lines.extend(f"+ Added: {m.describe()}" for m in self.methods_added)
        lines.extend(f"- Removed: {m.describe()}" for m in self.methods_removed)
        for change in self.methods_changed:
            lines.append(f"~ Changed: {change.name}")
            lines.append(f"    was: {change.before.describe()}")
            lines.append(f"    now: {change.after.describe()}")
        lines.extend(f"+ Added: {a}" for a in self.attributes_added)
        lines.extend(f"- Removed: {a}" for a in self.attributes_removed)
        lines.extend(f"+ Now includes: {m.name}" for m in self.mixins_added)
        lines.extend(f"- No longer includes: {m.name}" for m in self.mixins_removed)
        lines.extend(f"+ Now references: {c}" for c in self.constants_added)
        lines.extend(f"- No longer references: {c}" for c in self.constants_removed)
        lines.append("")
        lines.append(f"Magnitude: {magnitude} ({self.weights.severity(magnitude)})")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"FingerprintDiff(magnitude={self.magnitude}, severity={self.severity!r})"


def _first_by_name(methods: Tuple[Method, ...]) -> List[Method]:
    """First method per name, in source order."""
    seen = set()
    unique: List[Method] = []
    for method in methods:
        if method.name not in seen:
            seen.add(method.name)
            unique.append(method)
    return unique

# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests for Engine + Cache + Graph workflow.

Drives build_engine() over the garden project end-to-end: fingerprints,
change reports, kin, deep kin, merged relationships and lifecycle events.
"""

import os
from pathlib import Path
from typing import Any, List

import yaml

from rubyprint.engine import build_engine
from rubyprint.events import AnalysisEvent, EventBus, EventType
from rubyprint.models import Visibility

PREVIOUS_SEED = """\
require_relative 'soil'

class Seed
  attr_reader :name, :planted_at

  def initialize(name, soil: nil)
    @name = name
    @planted_at = Time.now
    @soil = soil
  end

  def sprout
    Flower.new(self)
  end
end
"""


def create_config_file(project_path: Path, **kwargs: Any) -> Path:
    """Write .rubyprint.yml into a project.

    Args:
        project_path: Path to project root
        **kwargs: Configuration values

    Returns:
        Path to the config file
    """
    config_path = project_path / ".rubyprint.yml"
    with open(config_path, "w") as f:
        yaml.dump(kwargs, f)
    return config_path


def _names(files) -> List[str]:
    return [f.stem for f in files]


class TestFingerprints:
    """Fingerprints of real project files."""

    def test_seed_fingerprint(self, garden: Path) -> None:
        """Test the seed file's structure."""
        engine = build_engine(garden)

        fingerprint = engine.fingerprint("seed.rb")

        assert fingerprint.classes == ("Seed",)
        assert [a.name for a in fingerprint.attributes] == ["name", "planted_at", "soil"]
        assert [(m.name, m.visibility) for m in fingerprint.methods] == [
            ("initialize", Visibility.PUBLIC),
            ("sprout", Visibility.PUBLIC),
            ("viable?", Visibility.PUBLIC),
            ("expired?", Visibility.PRIVATE),
        ]
        assert [d.target_path for d in fingerprint.dependencies] == ["soil"]
        assert fingerprint.external_references() == ("Time", "Flower")
        assert fingerprint.parsed_cleanly

    def test_basket_fingerprint(self, garden: Path) -> None:
        """Test mixins and operator methods."""
        engine = build_engine(garden)

        fingerprint = engine.fingerprint("basket")

        assert fingerprint.mixin_names == ("Enumerable",)
        assert [m.name for m in fingerprint.methods] == ["initialize", "<<", "each"]
        assert fingerprint.find_method("each").parameters.block == "block"

    def test_backends_agree_on_shape(self, garden: Path) -> None:
        """Test the strict backend finds the same methods and visibilities."""
        default = build_engine(garden).fingerprint("seed")
        create_config_file(garden, parser_backend="strict")
        strict = build_engine(garden).fingerprint("seed")

        assert [(m.name, m.visibility) for m in strict.methods] == [
            (m.name, m.visibility) for m in default.methods
        ]
        assert [a.name for a in strict.attributes] == [a.name for a in default.attributes]
        assert strict.comments == ()
        assert default.comments != ()

    def test_broken_file(self, garden: Path) -> None:
        """Test a syntax error is reported rather than raised."""
        (garden / "broken.rb").write_text("class Broken\n  def oops(\nend\n")
        engine = build_engine(garden)

        fingerprint = engine.fingerprint("broken")

        assert not fingerprint.parsed_cleanly

        create_config_file(garden, parser_backend="strict")
        strict = build_engine(garden).fingerprint("broken")
        assert strict.classes == ()
        assert strict.diagnostics[0].message.startswith("fatal:")


class TestChangeReports:
    """Diffs between versions of a file."""

    def test_diff_since_previous_text(self, garden: Path) -> None:
        """Test added behavior is itemized and scored."""
        engine = build_engine(garden)

        diff = engine.diff_since("seed", PREVIOUS_SEED)

        assert [m.name for m in diff.methods_added] == ["viable?", "expired?"]
        assert [a.name for a in diff.attributes_added] == ["soil"]
        assert diff.magnitude == 8
        assert diff.severity == "significant"
        assert diff.describe().endswith("Magnitude: 8 (significant)")

    def test_diff_after_edit_on_disk(self, garden: Path) -> None:
        """Test the cache serves the new version after the file changes."""
        engine = build_engine(garden)
        soil_path = garden / "soil.rb"
        before = engine.fingerprint("soil")

        soil_path.write_text(soil_path.read_text().replace("def water!", "def drain!"))
        os.utime(soil_path, (2_000_000_000, 2_000_000_000))
        diff = engine.diff(before, engine.fingerprint("soil"))

        assert [m.name for m in diff.methods_added] == ["drain!"]
        assert [m.name for m in diff.methods_removed] == ["water!"]
        assert diff.magnitude == 6

    def test_custom_weights_from_config(self, garden: Path) -> None:
        """Test configured weights change the score."""
        create_config_file(garden, magnitude_weights={"methods_added": 1, "attributes_added": 0})
        engine = build_engine(garden)

        diff = engine.diff_since("seed", PREVIOUS_SEED)

        assert diff.magnitude == 2
        assert diff.severity == "minor"


class TestRelationships:
    """Kin, deep kin and merged evidence across the garden."""

    def test_kin(self, garden: Path) -> None:
        """Test direct kin in discovery order."""
        engine = build_engine(garden)

        assert _names(engine.kin("seed")) == ["soil", "flower", "gardener"]
        assert _names(engine.kin("soil")) == ["gardener", "seed"]
        assert _names(engine.kin("basket")) == ["flower"]

    def test_deep_kin(self, garden: Path) -> None:
        """Test the breadth-first closure from both ends of the garden."""
        engine = build_engine(garden)

        assert _names(engine.deep_kin("seed", depth=2)) == ["soil", "flower", "gardener", "basket"]
        assert _names(engine.deep_kin("basket", depth=2)) == ["flower", "seed"]
        assert _names(engine.deep_kin("basket")) == ["flower", "seed", "soil", "gardener"]

    def test_deep_kin_depth_from_config(self, garden: Path) -> None:
        """Test the configured default depth."""
        create_config_file(garden, deep_kin_depth=1)
        engine = build_engine(garden)

        assert _names(engine.deep_kin("basket")) == ["flower"]

    def test_relationships(self, garden: Path) -> None:
        """Test direct and structural evidence merged per file."""
        engine = build_engine(garden)

        edges = {edge.target.stem: edge.reasons for edge in engine.relationships("seed").values()}

        assert list(edges) == ["soil", "flower", "gardener"]
        assert edges["soil"] == ("requires soil", "mentions soil")
        assert edges["flower"] == (
            "required by flower.rb",
            "mentioned by flower.rb",
            "seed.rb references Flower",
        )
        assert edges["gardener"] == (
            "required by gardener.rb",
            "mentioned by gardener.rb",
            "gardener.rb references Seed",
        )

    def test_ignored_files_are_not_kin(self, garden: Path) -> None:
        """Test configured ignore patterns keep files out of the graph."""
        create_config_file(garden, ignore_patterns=["gardener*"])
        engine = build_engine(garden)

        assert _names(engine.kin("seed")) == ["soil", "flower"]


class TestEvents:
    """Lifecycle events observed through the bus."""

    def test_cache_lifecycle(self, garden: Path) -> None:
        """Test computed, hit and invalidated events across an edit."""
        bus = EventBus()
        events: List[AnalysisEvent] = []
        bus.subscribe(events.append)
        engine = build_engine(garden, events=bus)
        seed_path = garden / "seed.rb"

        engine.fingerprint("seed")
        engine.fingerprint("seed")
        seed_path.write_text(PREVIOUS_SEED)
        os.utime(seed_path, (2_000_000_000, 2_000_000_000))
        engine.fingerprint("seed")

        assert [e.event_type for e in events] == [
            EventType.FINGERPRINT_COMPUTED,
            EventType.CACHE_HIT,
            EventType.CACHE_INVALIDATED,
            EventType.FINGERPRINT_COMPUTED,
        ]
        assert events[2].detail == {"reason": "modified"}
        assert events[0].detail["methods"] == "4"

    def test_edge_events(self, garden: Path) -> None:
        """Test one edge_discovered event per kin edge."""
        bus = EventBus()
        events: List[AnalysisEvent] = []
        bus.subscribe(events.append)
        engine = build_engine(garden, events=bus)

        engine.kin("seed")

        edges = [e for e in events if e.event_type == EventType.EDGE_DISCOVERED]
        assert [Path(e.detail["target"]).stem for e in edges] == ["soil", "flower", "gardener"]

    def test_last_touched(self, garden: Path) -> None:
        """Test the most recently edited file is reported."""
        os.utime(garden / "basket.rb", (2_000_000_000, 2_000_000_000))

        assert build_engine(garden).last_touched().stem == "basket"

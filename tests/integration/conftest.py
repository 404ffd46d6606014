# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for integration tests.

Provides a representative Ruby project.
"""

from pathlib import Path
from typing import Dict

import pytest

GARDEN_FILES: Dict[str, str] = {
    "seed.rb": """\
# frozen_string_literal: true
#
# The beginning of everything.

require_relative 'soil'

class Seed
  attr_reader :name, :planted_at, :soil

  def initialize(name, soil: nil)
    @name = name
    @planted_at = Time.now
    @soil = soil
  end

  def sprout
    Flower.new(self)
  end

  def viable?
    soil.nil? || soil.fertile?
  end

  private

  def expired?
    (Time.now - planted_at) > 86400 * 30
  end
end
""",
    "soil.rb": """\
# frozen_string_literal: true
#
# Nutrients, moisture and pH.

class Soil
  attr_reader :nutrients, :moisture, :ph

  def initialize(nutrients: 0.5, moisture: 0.5, ph: 7.0)
    @nutrients = nutrients
    @moisture = moisture
    @ph = ph
  end

  def fertile?
    nutrients > 0.3 && moisture > 0.2
  end

  def water!(amount = 0.1)
    @moisture = [@moisture + amount, 1.0].min
    self
  end
end
""",
    "flower.rb": """\
# frozen_string_literal: true

require_relative 'seed'

class Flower
  attr_reader :origin, :color

  PALETTES = {
    lavender: :violet,
    rose: :crimson,
  }.freeze

  def initialize(origin, color: nil)
    @origin = origin
    @color = color || PALETTES.fetch(origin.name, :white)
  end

  def pick
    Basket.new << self
  end
end
""",
    "basket.rb": """\
# frozen_string_literal: true

require_relative 'flower'

class Basket
  include Enumerable

  def initialize
    @flowers = []
  end

  def <<(flower)
    @flowers << flower
    self
  end

  def each(&block)
    @flowers.each(&block)
  end
end
""",
    "gardener.rb": """\
# frozen_string_literal: true

require_relative 'seed'

class Gardener
  attr_reader :name, :soil

  def initialize(name, soil: nil)
    @name = name
    @soil = soil || Soil.new
  end

  def plant(seed_name)
    Seed.new(seed_name, soil: soil)
  end
end
""",
}


@pytest.fixture
def garden(tmp_path: Path) -> Path:
    """Create a small Ruby project for integration testing.

    Relationships:
    - seed requires soil; flower and gardener require seed; basket requires flower
    - gardener mentions soil by name and references Soil and Seed
    - seed references Flower; flower references Basket
    - basket includes Enumerable

    Returns:
        Path to the project root directory
    """
    project_root = tmp_path / "garden"
    project_root.mkdir()
    for name, text in GARDEN_FILES.items():
        (project_root / name).write_text(text)
    return project_root


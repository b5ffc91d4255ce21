"""Tests for the batch slab packer."""

import itertools

import pytest

from slabnest.nesting.errors import EngineFault, InvalidRequest, OptimizationTimeout
from slabnest.nesting.geometry import Box, overlaps
from slabnest.nesting.models import (
    CircleData,
    LockedPosition,
    NestingResult,
    Part,
    ShapeType,
    Slab,
)
from slabnest.nesting.packer import (
    NestingConfig,
    PackingSurface,
    SlabPacker,
    create_packer,
    export_layout,
    optimize,
    validate_request,
)
from slabnest.nesting.serialization import result_to_json


def locked_part(part_id, width, height, slab_id, x, y, rotation=0, **kwargs):
    return Part(
        part_id, part_id, width, height,
        is_locked=True,
        locked_position=LockedPosition(slab_id=slab_id, x=x, y=y, rotation=rotation),
        **kwargs,
    )


def assert_layout_valid(result: NestingResult, slabs, kerf):
    """Check the no-overlap and bounds invariants."""
    by_id = {s.id: s for s in slabs}
    for placement in result.placements:
        slab = by_id[placement.slab_id]
        assert placement.x >= 0 and placement.y >= 0
        assert placement.x + placement.width <= slab.width
        assert placement.y + placement.height <= slab.height

    for a, b in itertools.combinations(result.placements, 2):
        if a.slab_id == b.slab_id:
            assert not overlaps(Box.from_placement(a), Box.from_placement(b), kerf), (a, b)


@pytest.fixture
def shop_parts():
    """A kitchen's worth of parts, in no particular order."""
    return [
        Part("splash-1", "Splashback", 900, 150),
        Part("counter-1", "Counter left", 1200, 620),
        Part("island", "Island", 1400, 900),
        Part("sill", "Window sill", 1100, 200, allow_rotation=False),
        Part("splash-2", "Splashback", 900, 150),
        Part("table", "Table top", 0, 0, shape_type=ShapeType.CIRCLE, shape_data=CircleData(300)),
        Part("counter-2", "Counter right", 800, 620),
        Part("hob", "Hob surround", 700, 520),
        Part("shelf", "Shelf", 600, 250),
        Part("huge", "Too big", 4000, 2500),
    ]


@pytest.fixture
def shop_slabs():
    return [
        Slab("s1", "Calacatta A", 3000, 1400),
        Slab("s2", "Calacatta B", 2400, 1200),
    ]


class TestNestingConfig:
    """Tests for NestingConfig dataclass."""

    def test_default_config(self):
        """Test default configuration."""
        config = NestingConfig()

        assert config.timeout_seconds == 30.0
        assert config.allow_rotation is True

    def test_round_trip(self):
        """Test config serialization."""
        config = NestingConfig(timeout_seconds=5.0, allow_rotation=False)
        restored = NestingConfig.from_dict(config.to_dict())

        assert restored == config

    def test_from_dict_defaults(self):
        """Test missing keys fall back to defaults."""
        config = NestingConfig.from_dict({})

        assert config.timeout_seconds == 30.0
        assert config.allow_rotation is True


class TestPackingSurface:
    """Tests for a single slab's packing state."""

    @pytest.fixture
    def surface(self):
        return PackingSurface(slab=Slab("s1", "Slab", 1000, 1000), kerf=0)

    def test_place_locked(self, surface):
        """Test locked part goes exactly where pinned."""
        part = locked_part("l1", 200, 100, "s1", 50, 60, rotation=90)
        placed = surface.place_locked(part)

        assert (placed.x, placed.y, placed.rotation) == (50, 60, 90)
        assert (placed.width, placed.height) == (100, 200)

    def test_place_locked_out_of_bounds(self, surface):
        """Test locked part past the slab edge is rejected."""
        assert surface.place_locked(locked_part("l1", 200, 100, "s1", 900, 0)) is None
        assert surface.place_locked(locked_part("l2", 200, 100, "s1", -1, 0)) is None
        assert surface.placements == []

    def test_place_locked_collision(self, surface):
        """Test second overlapping locked part is rejected."""
        assert surface.place_locked(locked_part("l1", 500, 500, "s1", 0, 0)) is not None
        assert surface.place_locked(locked_part("l2", 500, 500, "s1", 400, 400)) is None

    def test_try_place_rotated(self):
        """Test rotation is tried when upright does not fit."""
        surface = PackingSurface(slab=Slab("s1", "Slab", 1000, 500), kerf=0)
        placed = surface.try_place(Part("p1", "Tall", 400, 800))

        assert placed.rotation == 90
        assert (placed.width, placed.height) == (800, 400)

    def test_try_place_rotation_disabled_globally(self):
        """Test the config switch overrides the part flag."""
        surface = PackingSurface(slab=Slab("s1", "Slab", 1000, 500), kerf=0)
        assert surface.try_place(Part("p1", "Tall", 400, 800), allow_rotation=False) is None

    def test_usage(self, surface):
        """Test area accounting on one slab."""
        surface.try_place(Part("p1", "A", 500, 200))
        usage = surface.usage()

        assert usage.used_area == 100000
        assert usage.total_area == 1000000
        assert usage.waste_percentage == pytest.approx(90.0)


class TestScenarios:
    """Reference layouts."""

    def test_single_part(self):
        """One 600x400 part on a 2000x1000 slab sits at the origin."""
        slab = Slab("s1", "Slab", 2000, 1000)
        result = optimize([Part("p1", "Counter", 600, 400, allow_rotation=True)], [slab], 0)

        assert len(result.placements) == 1
        placement = result.placements[0]
        assert (placement.x, placement.y, placement.rotation) == (0, 0, 0)
        assert (placement.width, placement.height) == (600, 400)
        assert result.unplaced_parts == []
        assert result.slab_usage[0].waste_percentage == pytest.approx(88.0)

    def test_kerf_blocks_second_part(self):
        """Two 600x600 parts cannot share a 1000x1000 slab with 10mm kerf."""
        slab = Slab("s1", "Slab", 1000, 1000)
        parts = [
            Part("a", "A", 600, 600, allow_rotation=False),
            Part("b", "B", 600, 600, allow_rotation=False),
        ]
        result = optimize(parts, [slab], 10)

        assert [p.part_id for p in result.placements] == ["a"]
        assert result.unplaced_parts == ["b"]

    def test_locked_part_blocks_free_part(self):
        """A locked part keeps its spot and pushes the free part out."""
        slab = Slab("S", "Slab", 1000, 1000)
        parts = [
            Part("free", "Free", 500, 500, allow_rotation=False),
            locked_part("locked", 800, 800, "S", 0, 0),
        ]
        result = optimize(parts, [slab], 0)

        locked = result.placement_for("locked")
        assert (locked.x, locked.y, locked.rotation) == (0, 0, 0)
        assert result.unplaced_parts == ["free"]

    def test_locked_part_leaves_alternate_slot(self):
        """A free part finds the strip beside a locked part."""
        slab = Slab("S", "Slab", 1000, 1000)
        parts = [
            Part("free", "Free", 150, 150),
            locked_part("locked", 800, 800, "S", 0, 0),
        ]
        result = optimize(parts, [slab], 0)

        free = result.placement_for("free")
        assert (free.x, free.y) == (800, 0)
        assert result.unplaced_parts == []

    def test_circle_box(self):
        """A circle of radius 150 takes a 300x300 box."""
        slab = Slab("s1", "Slab", 1000, 1000)
        part = Part("c1", "Round", 10, 10, shape_type=ShapeType.CIRCLE, shape_data=CircleData(150))
        result = optimize([part], [slab], 0)

        placement = result.placements[0]
        assert (placement.width, placement.height) == (300, 300)
        assert placement.rotation == 0
        assert result.slab_usage[0].used_area == pytest.approx(90000)


class TestSlabPacker:
    """Tests for SlabPacker class."""

    @pytest.fixture
    def packer(self):
        return SlabPacker(NestingConfig())

    def test_init_from_settings(self):
        """Test packer picks up configured timeout."""
        packer = SlabPacker()
        assert packer.config.timeout_seconds == 30.0

    def test_largest_first(self, packer):
        """Test bigger parts are seated first regardless of input order."""
        slab = Slab("s1", "Slab", 1000, 1000)
        result = packer.optimize([Part("s", "Small", 100, 100), Part("l", "Large", 500, 500)], [slab], 0)

        assert [p.part_id for p in result.placements] == ["l", "s"]
        assert result.placement_for("l").x == 0
        assert (result.placement_for("s").x, result.placement_for("s").y) == (500, 0)

    def test_equal_area_keeps_input_order(self, packer):
        """Test ties are broken by input order."""
        slab = Slab("s1", "Slab", 1000, 1000)
        parts = [Part("first", "A", 200, 300), Part("second", "B", 300, 200), Part("third", "C", 600, 100)]
        result = packer.optimize(parts, [slab], 0)

        assert [p.part_id for p in result.placements] == ["first", "second", "third"]

    def test_spills_to_next_slab(self, packer):
        """Test a part that does not fit the first slab goes to the second."""
        slabs = [Slab("s1", "Small", 500, 500), Slab("s2", "Large", 2000, 1000)]
        result = packer.optimize([Part("p1", "Counter", 1200, 600)], slabs, 0)

        assert result.placements[0].slab_id == "s2"

    def test_first_slab_wins(self, packer):
        """Test slabs are tried in caller order."""
        slabs = [Slab("b", "B", 2000, 1000), Slab("a", "A", 2000, 1000)]
        result = packer.optimize([Part("p1", "Counter", 600, 400)], slabs, 0)

        assert result.placements[0].slab_id == "b"

    def test_oversized_unplaced(self, packer):
        """Test a part larger than every slab in both orientations."""
        slabs = [Slab("s1", "Slab", 2000, 1000)]
        result = packer.optimize([Part("big", "Big", 2500, 2100)], slabs, 0)

        assert result.placements == []
        assert result.unplaced_parts == ["big"]

    def test_rotation_not_allowed(self, packer):
        """Test parts without allow_rotation stay upright."""
        slab = Slab("s1", "Slab", 1000, 500)
        result = packer.optimize([Part("p1", "Tall", 400, 800, allow_rotation=False)], [slab], 0)

        assert result.unplaced_parts == ["p1"]

    def test_locked_outside_slab(self, packer):
        """Test locked part beyond the slab edge is reported unplaced."""
        slab = Slab("S", "Slab", 1000, 1000)
        result = packer.optimize([locked_part("l1", 500, 500, "S", 600, 0)], [slab], 0)

        assert result.placements == []
        assert result.unplaced_parts == ["l1"]

    def test_locked_unknown_slab(self, packer):
        """Test locked part on a slab not in the request is unplaced."""
        slab = Slab("S", "Slab", 1000, 1000)
        result = packer.optimize([locked_part("l1", 100, 100, "gone", 0, 0)], [slab], 0)

        assert result.unplaced_parts == ["l1"]

    def test_locked_without_slab_uses_first(self, packer):
        """Test locked position without a slab id pins to the first slab."""
        slabs = [Slab("S1", "A", 1000, 1000), Slab("S2", "B", 1000, 1000)]
        result = packer.optimize([locked_part("l1", 100, 100, None, 10, 20)], slabs, 0)

        placement = result.placement_for("l1")
        assert placement.slab_id == "S1"
        assert (placement.x, placement.y) == (10, 20)

    def test_locked_conflict_keeps_first(self, packer):
        """Test the second of two colliding locked parts is unplaced."""
        slab = Slab("S", "Slab", 1000, 1000)
        parts = [
            locked_part("l1", 400, 400, "S", 0, 0),
            locked_part("l2", 400, 400, "S", 395, 0),
        ]
        result = packer.optimize(parts, [slab], 10)

        assert [p.part_id for p in result.placements] == ["l1"]
        assert result.unplaced_parts == ["l2"]

    def test_locked_rotated_box(self, packer):
        """Test a locked part at 270 degrees uses the swapped box."""
        slab = Slab("S", "Slab", 1000, 1000)
        result = packer.optimize([locked_part("l1", 600, 200, "S", 0, 0, rotation=270)], [slab], 0)

        placement = result.placement_for("l1")
        assert placement.rotation == 270
        assert (placement.width, placement.height) == (200, 600)

    def test_locked_flag_without_position_is_free(self, packer):
        """Test is_locked without a pinned position is packed normally."""
        slab = Slab("S", "Slab", 1000, 1000)
        part = Part("p1", "P", 300, 300, is_locked=True)
        result = packer.optimize([part], [slab], 0)

        assert result.placement_for("p1") is not None

    def test_no_parts(self, packer):
        """Test empty part list gives an empty layout."""
        slab = Slab("s1", "Slab", 1000, 1000)
        result = packer.optimize([], [slab], 3)

        assert result.placements == []
        assert result.unplaced_parts == []
        assert result.slab_usage[0].waste_percentage == 100.0

    def test_no_slabs(self, packer):
        """Test zero slabs fails fast."""
        with pytest.raises(InvalidRequest, match="At least one slab"):
            packer.optimize([Part("p1", "P", 100, 100)], [], 3)

    def test_missing_fields(self, packer):
        """Test missing inputs are rejected."""
        slab = Slab("s1", "Slab", 1000, 1000)
        with pytest.raises(InvalidRequest, match="Missing required fields"):
            packer.optimize(None, [slab], 3)
        with pytest.raises(InvalidRequest, match="Missing required fields"):
            packer.optimize([], [slab], None)

    def test_negative_kerf(self, packer):
        """Test negative kerf is rejected."""
        with pytest.raises(InvalidRequest, match="kerfWidth"):
            packer.optimize([], [Slab("s1", "Slab", 1000, 1000)], -1)

    def test_duplicate_part_ids(self):
        """Test duplicate part ids are rejected."""
        with pytest.raises(InvalidRequest, match="Duplicate part id"):
            validate_request([Part("p", "A", 1, 1), Part("p", "B", 1, 1)], [Slab("s", "S", 10, 10)], 0)

    def test_bad_slab(self):
        """Test slabs need positive dimensions."""
        with pytest.raises(InvalidRequest, match="positive dimensions"):
            validate_request([], [Slab("s", "S", 0, 10)], 0)

    def test_malformed_shape_is_engine_fault(self, packer):
        """Test a circle without radius surfaces as an engine fault."""
        slab = Slab("s1", "Slab", 1000, 1000)
        part = Part("c1", "Round", 10, 10, shape_type=ShapeType.CIRCLE)

        with pytest.raises(EngineFault):
            packer.optimize([part], [slab], 0)

    def test_unexpected_error_wrapped(self, packer, monkeypatch):
        """Test internal errors become EngineFault."""
        def boom(self, part, allow_rotation=True):
            raise RuntimeError("boom")

        monkeypatch.setattr(PackingSurface, "try_place", boom)
        with pytest.raises(EngineFault, match="boom") as exc_info:
            packer.optimize([Part("p1", "P", 10, 10)], [Slab("s1", "S", 100, 100)], 0)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_timeout(self):
        """Test the deadline aborts a run."""
        packer = SlabPacker(NestingConfig(timeout_seconds=-1))

        with pytest.raises(OptimizationTimeout) as exc_info:
            packer.optimize([Part("p1", "P", 10, 10)], [Slab("s1", "S", 100, 100)], 0)
        assert isinstance(exc_info.value, EngineFault)
        assert exc_info.value.remaining == 1

    def test_timeout_disabled(self):
        """Test None disables the deadline."""
        packer = create_packer(timeout_seconds=None)
        result = packer.optimize([Part("p1", "P", 10, 10)], [Slab("s1", "S", 100, 100)], 0)

        assert len(result.placements) == 1


class TestLayoutProperties:
    """Invariants over a realistic layout."""

    @pytest.fixture
    def result(self, shop_parts, shop_slabs):
        return optimize(shop_parts, shop_slabs, 4)

    def test_no_overlap_and_bounds(self, result, shop_slabs):
        """Test placements stay on their slab and keep a kerf apart."""
        assert_layout_valid(result, shop_slabs, 4)

    def test_conservation(self, result, shop_parts):
        """Test every part is placed or unplaced exactly once."""
        placed = [p.part_id for p in result.placements]
        assert len(placed) + len(result.unplaced_parts) == len(shop_parts)
        assert sorted(placed + result.unplaced_parts) == sorted(p.id for p in shop_parts)

    def test_oversized_reported(self, result):
        """Test the oversized part is the one left over."""
        assert "huge" in result.unplaced_parts

    def test_area_accounting(self, result, shop_slabs):
        """Test per-slab used area and waste."""
        for slab in shop_slabs:
            usage = result.usage_for(slab.id)
            expected = sum(p.width * p.height for p in result.placements_for_slab(slab.id))
            assert usage.used_area == pytest.approx(expected, abs=1e-6)
            assert usage.total_area == slab.width * slab.height
            assert usage.waste_percentage == pytest.approx(
                (usage.total_area - usage.used_area) / usage.total_area * 100, abs=1e-6
            )

    def test_deterministic(self, shop_parts, shop_slabs):
        """Test identical input gives identical output."""
        first = result_to_json(optimize(shop_parts, shop_slabs, 4))
        second = result_to_json(optimize(shop_parts, shop_slabs, 4))

        assert first == second

    def test_locked_parts_unaffected_by_free_parts(self, shop_parts, shop_slabs):
        """Test locked placements are identical whatever the free set is."""
        pinned = locked_part("pinned", 500, 400, "s2", 1000, 300, rotation=90)

        full = optimize(shop_parts + [pinned], shop_slabs, 4)
        reduced = optimize(shop_parts[:3] + [pinned], shop_slabs, 4)

        assert full.placement_for("pinned") == reduced.placement_for("pinned")
        assert full.placement_for("pinned").x == 1000
        assert full.placement_for("pinned").rotation == 90
        assert_layout_valid(full, shop_slabs, 4)


class TestExportLayout:
    """Tests for the text cut sheet."""

    def test_export(self):
        """Test layout text lists slabs, parts and leftovers."""
        slabs = [Slab("s1", "Calacatta", 2000, 1000)]
        parts = [Part("p1", "Counter", 600, 400), Part("big", "Big", 5000, 5000)]
        result = optimize(parts, slabs, 0)

        text = export_layout(result, slabs)

        assert "; Slab Calacatta (2000mm x 1000mm)" in text
        assert "p1: (0, 0) 600mm x 400mm @ 0°" in text
        assert "Unplaced parts (1)" in text
        assert "- big" in text

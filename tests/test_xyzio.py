from __future__ import annotations

import io

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from xyz2vox.xyzio import load_xyz, quantize, read_xyz


@pytest.mark.parametrize(
    "value, unit, expected",
    [
        (2.5, 1.0, 3),
        (-2.5, 1.0, -3),
        (0.5, 1.0, 1),
        (1.49, 1.0, 1),
        (0.3, 0.1, 3),
        (7.0, 2.0, 4),
        (0.0, 0.3, 0),
        (0.49999999999999994, 1.0, 0),
        (-0.49999999999999994, 1.0, 0),
        (4503599627370497.0, 1.0, 4503599627370497),
        (-4503599627370497.0, 1.0, -4503599627370497),
    ],
)
def test_quantize_rounds_half_away_from_zero(value, unit, expected):
    assert int(quantize(value, unit)) == expected


def test_read_xyz_positions_colors_and_bounds():
    text = "0 0 0 1\n130 0 0 2\n-1.4 2.6 3 255\n"
    cloud = read_xyz(io.StringIO(text), 1.0)
    assert len(cloud) == 3
    assert_array_equal(cloud.positions, [[0, 0, 0], [130, 0, 0], [-1, 3, 3]])
    assert_array_equal(cloud.colors, [1, 2, 255])
    assert cloud.bbox_min == (-1, 0, 0)
    assert cloud.bbox_max == (130, 3, 3)
    assert cloud.positions.dtype == np.int64


def test_read_xyz_applies_voxel_size():
    cloud = read_xyz(["1.0 2.0 0.3 4"], 0.1)
    assert_array_equal(cloud.positions, [[10, 20, 3]])


def test_read_stops_at_first_unparseable_line():
    lines = ["1 1 1 1", "2 2 2", "3 3 3 3"]
    cloud = read_xyz(lines)
    assert len(cloud) == 1


@pytest.mark.parametrize("bad", ["x 0 0 1", "0 0 0 red", "0 0 0 1.5", "nan 0 0 1", "# comment"])
def test_bad_line_terminates(bad):
    cloud = read_xyz(["0 0 0 1", bad, "5 5 5 5"])
    assert len(cloud) == 1


@pytest.mark.parametrize("line, unit", [("1e30 0 0 1", 1.0), ("0 -1e30 0 1", 1.0), ("0 0 1e15 1", 0.01)])
def test_out_of_range_coordinate_terminates(line, unit):
    cloud = read_xyz(["1 2 3 1", line, "4 5 6 2"], unit)
    assert len(cloud) == 1
    assert cloud.bbox_min == cloud.bbox_max == tuple(int(v) for v in quantize([1, 2, 3], unit))


def test_blank_lines_and_extra_tokens():
    cloud = read_xyz(["0 0 0 1 extra", "", "   ", "1 1 1 2"])
    assert len(cloud) == 2


def test_color_is_narrowed_to_byte():
    cloud = read_xyz(["0 0 0 257"])
    assert int(cloud.colors[0]) == 1


def test_empty_input():
    cloud = read_xyz([])
    assert len(cloud) == 0
    assert cloud.bbox_min is None and cloud.bbox_max is None
    assert cloud.positions.shape == (0, 3)


def test_invalid_voxel_size():
    with pytest.raises(ValueError):
        read_xyz(["0 0 0 1"], 0)


def test_load_xyz(tmp_path):
    path = tmp_path / "cloud.xyz"
    path.write_text("0.2 0.4 0.6 3\n", encoding="utf-8")
    cloud = load_xyz(path, 0.2)
    assert_array_equal(cloud.positions, [[1, 2, 3]])

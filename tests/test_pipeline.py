from __future__ import annotations

import logging

import pytest

from xyz2vox import ConvertOptions, convert, pipeline
from xyz2vox.vox import VoxFile, load_vox


def _write(tmp_path, text: str):
    path = tmp_path / "cloud.xyz"
    path.write_text(text, encoding="utf-8")
    return path


def test_two_model_scene(tmp_path):
    src = _write(tmp_path, "0 0 0 1\n130 0 0 2\n")
    out = tmp_path / "scene.vox"
    result = convert(src, out, options=ConvertOptions(voxel_size=1.0, max_model_size=126, verify=True))

    assert result.voxel_count == 2
    assert result.model_count == 2
    data = out.read_bytes()
    assert data[:4] == b"VOX "
    assert int.from_bytes(data[4:8], "little") == 150
    assert result.bytes_written == len(data)

    vox = load_vox(out)
    assert vox.pack_count == 2
    assert [m.size for m in vox.models] == [(1, 1, 1), (1, 1, 1)]
    assert vox.models[0].voxels.tolist() == [[0, 0, 0, 1]]
    assert vox.models[1].voxels.tolist() == [[0, 0, 0, 2]]

    assert vox.nodes[0].kind == "trn" and vox.nodes[0].children == [1]
    assert vox.nodes[1].kind == "grp" and vox.nodes[1].children == [2, 4]
    assert vox.nodes[2].children == [3] and vox.nodes[3].model_ids == [0]
    assert vox.nodes[4].children == [5] and vox.nodes[5].model_ids == [1]
    assert vox.nodes[2].translation == (0, 0, 0)
    assert vox.nodes[4].translation == (130, 0, 0)


def test_voxel_size_and_logging(tmp_path, caplog):
    src = _write(tmp_path, "0.0 0.0 0.0 1\n0.5 0.5 0.5 2\nend\n9 9 9 9\n")
    out = tmp_path / "scene.vox"
    with caplog.at_level(logging.INFO, logger="xyz2vox"):
        result = convert(src, out, options=ConvertOptions(voxel_size=0.5))
    assert result.voxel_count == 2
    assert result.model_count == 1
    assert "Read 2 voxels" in caplog.text
    assert "Conversion finished." in caplog.text
    assert load_vox(out).models[0].size == (2, 2, 2)


def test_empty_input_writes_empty_scene(tmp_path, caplog):
    src = _write(tmp_path, "")
    out = tmp_path / "scene.vox"
    with caplog.at_level(logging.WARNING, logger="xyz2vox"):
        result = convert(src, out)
    assert result.model_count == 0
    assert "No voxels read" in caplog.text
    vox = load_vox(out)
    assert vox.pack_count == 0
    assert vox.nodes[1].children == []


def test_small_max_model_size_splits(tmp_path):
    lines = "".join(f"{x} 0 0 1\n" for x in range(10))
    src = _write(tmp_path, lines)
    result = convert(src, tmp_path / "scene.vox", options=ConvertOptions(max_model_size=4, verify=True))
    assert result.model_count == 3


@pytest.mark.parametrize("opts", [ConvertOptions(max_model_size=0), ConvertOptions(max_model_size=300), ConvertOptions(voxel_size=0)])
def test_invalid_options_fail_before_writing(tmp_path, opts):
    src = _write(tmp_path, "0 0 0 1\n")
    out = tmp_path / "scene.vox"
    with pytest.raises(ValueError):
        convert(src, out, options=opts)
    assert not out.exists()


def test_verification_error_is_a_value_error(tmp_path, monkeypatch):
    src = _write(tmp_path, "0 0 0 1\n")
    monkeypatch.setattr(pipeline, "load_vox", lambda path: VoxFile(version=150, pack_count=1, models=[], nodes={}))
    with pytest.raises(pipeline.VerificationError):
        convert(src, tmp_path / "scene.vox", options=ConvertOptions(verify=True))
    assert issubclass(pipeline.VerificationError, ValueError)

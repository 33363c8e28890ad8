# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

# tests/test_cli.py
import json

import pytest

from vertgrid.cli import build_parser, main
from vertgrid.mesh import rectangular_mesh


def _write_gr3(path, mesh):
    lines = ["synthetic shelf", f"{len(mesh.elements)} {mesh.n_nodes}"]
    for node_id, x, y, h in zip(mesh.ids, mesh.x, mesh.y, mesh.depth):
        lines.append(f"{node_id} {float(x)!r} {float(y)!r} {float(h)!r}")
    for k, element in enumerate(mesh.elements, start=1):
        ids = " ".join(str(mesh.ids[i]) for i in element)
        lines.append(f"{k} {len(element)} {ids}")
    path.write_text("\n".join(lines) + "\n")
    return str(path)


@pytest.fixture
def mesh_path(tmp_path):
    mesh = rectangular_mesh(6, 3, lambda x, y: 2.0 + 10.0 * x + y)
    return _write_gr3(tmp_path / "hgrid.gr3", mesh)


def test_parser_defaults():
    args = build_parser().parse_args(["hgrid.gr3"])
    assert args.output == "vgrid.json"
    assert args.workers == 1
    assert args.levels is None
    assert args.strict is None


def test_cli_success(tmp_path, mesh_path, capsys):
    out = tmp_path / "vgrid.json"
    code = main([mesh_path, "-o", str(out), "-N", "12", "--h-c", "5", "--h-s", "40"])
    assert code == 0

    doc = json.loads(out.read_text())
    assert doc["format"] == "vertgrid"
    assert doc["header"]["levels"] == 12
    assert len(doc["nodes"]) == 18
    assert doc["quality"]["converged"] is True

    captured = capsys.readouterr()
    assert "Vertical grids saved" in captured.out
    assert "levels" in captured.out


def test_cli_writes_schism_files(tmp_path, mesh_path):
    lsc2 = tmp_path / "vgrid.lsc2.in"
    sz = tmp_path / "vgrid.sz.in"
    code = main([mesh_path, "-o", str(tmp_path / "vgrid.json"), "-N", "12",
                 "--h-c", "5", "--h-s", "40", "--lsc2", str(lsc2), "--sz", str(sz), "-q"])
    assert code == 0
    assert lsc2.read_text().splitlines()[0] == "1"
    assert sz.read_text().splitlines()[0] == "2"


def test_cli_config_file_with_override(tmp_path, mesh_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"levels": 10, "h_c": 5.0, "h_s": 40.0}))
    out = tmp_path / "vgrid.json"
    code = main([mesh_path, "-o", str(out), "--config", str(config_path),
                 "--max-jump", "3", "-q"])
    assert code == 0
    header = json.loads(out.read_text())["header"]
    assert header["levels"] == 10
    assert header["max_jump"] == 3


def test_cli_bad_config_exit_code(tmp_path, mesh_path, capsys):
    code = main([mesh_path, "-o", str(tmp_path / "vgrid.json"), "--theta-b", "2"])
    assert code == 2
    assert "error:" in capsys.readouterr().err


def test_cli_missing_mesh_exit_code(tmp_path):
    code = main([str(tmp_path / "missing.gr3"), "-o", str(tmp_path / "vgrid.json")])
    assert code == 3


def test_cli_strict_non_convergence_exit_code(tmp_path, mesh_path):
    code = main([mesh_path, "-o", str(tmp_path / "vgrid.json"), "-N", "12",
                 "--h-c", "5", "--h-s", "40", "--max-iterations", "0", "--strict"])
    assert code == 4
    assert not (tmp_path / "vgrid.json").exists()


def test_cli_unwritable_output_exit_code(tmp_path, mesh_path):
    code = main([mesh_path, "-o", str(tmp_path / "no" / "dir" / "vgrid.json"),
                 "-N", "12", "--h-c", "5", "--h-s", "40", "-q"])
    assert code == 6


def test_cli_non_converged_warns(tmp_path, mesh_path, capsys):
    code = main([mesh_path, "-o", str(tmp_path / "vgrid.json"), "-N", "12",
                 "--h-c", "5", "--h-s", "40", "--max-iterations", "0", "-q"])
    assert code == 0
    assert "warning:" in capsys.readouterr().err


def test_cli_no_strict_overrides_config_file(tmp_path, mesh_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"levels": 12, "h_c": 5.0, "h_s": 40.0,
                                       "strict": True, "max_iterations": 0}))
    args = ["-o", str(tmp_path / "vgrid.json"), "--config", str(config_path), "-q"]
    assert main([mesh_path, *args]) == 4
    assert main([mesh_path, *args, "--no-strict"]) == 0
    header = json.loads((tmp_path / "vgrid.json").read_text())["header"]
    assert header["strict"] is False


def test_cli_boolean_flags_default_to_config():
    args = build_parser().parse_args(["hgrid.gr3", "--boundary-refine"])
    assert args.boundary_refine is True
    assert args.strict is None
    args = build_parser().parse_args(["hgrid.gr3", "--no-boundary-refine"])
    assert args.boundary_refine is False


def test_cli_rejects_negative_workers(tmp_path, mesh_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([mesh_path, "-o", str(tmp_path / "vgrid.json"), "--workers", "-1"])
    assert excinfo.value.code == 2
    assert "--workers" in capsys.readouterr().err


def test_cli_sz_follows_deepest_node(tmp_path, mesh_path):
    sz = tmp_path / "vgrid.sz.in"
    code = main([mesh_path, "-o", str(tmp_path / "vgrid.json"), "-N", "12",
                 "--h-c", "5", "--h-s", "40", "--sz", str(sz), "-q"])
    assert code == 0
    lines = sz.read_text().splitlines()
    # deepest node of the fixture mesh: 2 + 10 * 5 + 2
    assert float(lines[3].split()[1]) == -54.0


def test_cli_sz_rejects_non_schism_stretching(tmp_path, mesh_path):
    out = tmp_path / "vgrid.json"
    code = main([mesh_path, "-o", str(out), "--stretching", "tanh",
                 "--sz", str(tmp_path / "vgrid.sz.in"), "-q"])
    assert code == 2
    assert not out.exists()

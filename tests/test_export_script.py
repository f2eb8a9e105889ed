from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest

from whamo.adapters.project.project_io import save_project

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "export_inp.py"


@pytest.fixture(scope="module")
def export_inp():
    spec = importlib.util.spec_from_file_location("export_inp", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_project_to_inp(tmp_path, export_inp, reservoir_to_tank):
    src = save_project(reservoir_to_tank, tmp_path / "net.json")
    tables = tmp_path / "tables.xlsx"
    csv = tmp_path / "requests.csv"

    rc = export_inp.main([str(src), "--tables", str(tables), "--requests-csv", str(csv)])

    assert rc == 0
    text = (tmp_path / "net.inp").read_text(encoding="utf-8")
    assert "NODE 1 ELEV 328.08" in text.split("\n")
    assert tables.exists() and csv.exists()


def test_unit_switch_before_export(tmp_path, export_inp, reservoir_to_tank):
    src = save_project(reservoir_to_tank, tmp_path / "net.json")
    out = tmp_path / "fps.inp"

    assert export_inp.main([str(src), "-o", str(out), "--unit", "FPS"]) == 0
    # values converted to FPS first, then written as-is
    assert "NODE 1 ELEV 328.08" in out.read_text(encoding="utf-8").split("\n")


def test_validation_errors_stop_export(tmp_path, export_inp):
    src = tmp_path / "bad.json"
    src.write_text(
        '{"nodes": [{"id": "1", "type": "surgeTank", "data": {"topElevation": 10, "bottomElevation": 20}}],'
        ' "edges": []}',
        encoding="utf-8",
    )
    assert export_inp.main([str(src)]) == 1
    assert not (tmp_path / "bad.inp").exists()

    assert export_inp.main([str(src), "--no-validate"]) == 0
    assert (tmp_path / "bad.inp").exists()

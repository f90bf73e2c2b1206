import os
import sys
import json

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'src'))

import main as cli
from satfunc.endpoints import (
    EPSOptions,
    InvalidEndpointBehaviour,
    RawTableEndPoints,
    SaturationPoints,
)
from satfunc.tables import SaturationTables


GRID_CFG = {
    "num_cells": 3,
    "keywords": {"SWCR": [0.1, 1.0e21, 0.2], "SWU": [0.8, 0.9, 0.9], "SATNUM": [1, 2, 2]},
    "intehead": {"unit": 1, "phases": 7},
}

END_POINTS = {
    "conn": {"water": [0.05, 0.1], "gas": [0.0, 0.0]},
    "crit": {"water": [0.0, 0.3], "gas": [0.05, 0.05],
             "oil_in_water": [0.2, 0.2], "oil_in_gas": [0.1, 0.1]},
    "smax": {"water": [1.0, 1.0], "gas": [0.9, 0.9], "oil": [0.95, 0.9]},
}


def test_scale_points_uses_cell_regions():
    grid = cli.build_grid(GRID_CFG)
    raw_ep = RawTableEndPoints.from_config(END_POINTS)
    points = SaturationPoints([0, 1, 2], [0.45, 0.6, 0.55])
    out = cli.scale_points(grid, raw_ep, EPSOptions(), InvalidEndpointBehaviour.UseUnscaled, points)
    # ячейка 0: регион 1, [0.1, 0.8] -> [0.0, 1.0]
    # ячейка 1: регион 2, SWCR по умолчанию 0.3, [0.3, 0.9] -> [0.3, 1.0]
    # ячейка 2: регион 2, [0.2, 0.9] -> [0.3, 1.0]
    assert out.tolist() == pytest.approx([0.5, 0.3 + 0.5 * 0.7, 0.3 + 0.5 * 0.7])


def test_scale_points_reverse():
    grid = cli.build_grid(GRID_CFG)
    raw_ep = RawTableEndPoints.from_config(END_POINTS)
    points = SaturationPoints([0], [0.5])
    out = cli.scale_points(grid, raw_ep, EPSOptions(), InvalidEndpointBehaviour.UseUnscaled,
                           points, direction='reverse')
    assert out[0].item() == pytest.approx(0.45)


def test_vertical_values_scale_table_function():
    grid = cli.build_grid({"num_cells": 1, "keywords": {"KRW": 0.5}})
    tables = SaturationTables({
        "swof": [{"sw": [0.0, 1.0], "krw": [0.0, 1.0], "kro": [1.0, 0.0]}],
    })
    raw_ep = tables.raw_end_points()
    points = SaturationPoints([0], [0.4])
    out = cli.vertical_values(grid, tables, raw_ep, EPSOptions(), points, points.sat)
    assert out[0].item() == pytest.approx(0.2)


def test_main_runs_config(tmp_path, monkeypatch, capsys):
    config = {
        "description": "проверка",
        "grid": GRID_CFG,
        "end_points": END_POINTS,
        "options": {"curve": "relperm", "subsys": "oil_water", "phase": "aqua"},
        "invalid_endpoint": "ignore_point",
        "points": [[0, 0.45]],
    }
    path = tmp_path / "eps.json"
    path.write_text(json.dumps(config))
    monkeypatch.setattr(sys, "argv", ["main.py", "--config", str(path)])
    cli.main()
    out = capsys.readouterr().out
    assert "проверка" in out
    assert "0.500000" in out


def test_example_config(monkeypatch, capsys):
    path = os.path.join(os.path.dirname(__file__), '..', 'configs', 'eps_example.json')
    monkeypatch.setattr(sys, "argv", ["main.py", "--config", path])
    cli.main()
    out = capsys.readouterr().out
    assert "Табличных регионов: 2" in out
    assert "значение" in out

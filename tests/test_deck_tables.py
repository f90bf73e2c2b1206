import os
import sys

import pytest
import torch

sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'src'))

from satfunc.deck import (
    DEFAULTED_VALUE,
    grid_config_from_deck,
    grid_keywords_from_text,
    parse_saturation_tables,
    saturation_tables_from_text,
)
from satfunc.endpoints import EPSOptions, FunctionCategory as FCat, PhaseIndex as Ph, SubSystem as SSys
from satfunc.grid import GridProperties, grid_defaulted_vector
from satfunc.tables import SaturationTables
from satfunc.units import PSI


GRID_DECK = """-- концевые точки по ячейкам
SWL
  2*0.1 0.2 /
SWCR
  3* /
SWU
  0.9, 0.85, 0.8 /
SATNUM
  1 2 2 /
"""

TABLE_DECK = """SWOF
-- Sw   Krw  Kro  Pcow
  0.1   0.0  1.0  3.0
  0.2   0.0  0.7  2.0
  0.5   0.3  0.2  1.0
  0.8   0.6  0.0  0.0 /
  0.15  0.0  1.0  2.0
  0.9   0.8  0.0  0.0 /

SGOF
  0.0   0.0  1.0  0.0
  0.05  0.0  0.8  0.1
  0.4   0.3  0.1  0.2
  0.7   0.6  0.0  0.3
  0.9   0.8  0.0  0.4 /
  0.0   0.0  1.0  0.0
  0.85  0.9  0.0  0.5 /
"""


def test_grid_keywords_repeat_counts():
    kw = grid_keywords_from_text(GRID_DECK)
    assert kw["SWL"] == pytest.approx([0.1, 0.1, 0.2])
    assert kw["SWCR"] == [DEFAULTED_VALUE] * 3
    assert kw["SWU"] == pytest.approx([0.9, 0.85, 0.8])


def test_grid_config_from_deck(tmp_path):
    path = tmp_path / "eps.inc"
    path.write_text(GRID_DECK)
    grid = GridProperties(grid_config_from_deck(str(path), {"unit": 1}))
    assert grid.num_cells() == 3
    assert grid.keyword_data("SATNUM", "global").tolist() == [1, 2, 2]
    # SWCR задан как 3* - значения по регионам
    swcr = grid_defaulted_vector(grid, "SWCR", [0.2, 0.25])
    assert swcr.tolist() == pytest.approx([0.2, 0.25, 0.25])


def test_grid_config_mismatching_lengths(tmp_path):
    path = tmp_path / "bad.inc"
    path.write_text("SWL\n 0.1 0.2 /\nSWU\n 0.9 /\n")
    with pytest.raises(ValueError):
        grid_config_from_deck(str(path))


def test_missing_deck_file():
    with pytest.raises(FileNotFoundError):
        parse_saturation_tables("/nonexistent/tables.inc")


def test_saturation_tables_parse_regions(tmp_path):
    path = tmp_path / "tables.inc"
    path.write_text(TABLE_DECK)
    tables = parse_saturation_tables(str(path))
    assert len(tables["swof"]) == 2
    assert len(tables["sgof"]) == 2
    assert tables["swof"][0]["sw"] == pytest.approx([0.1, 0.2, 0.5, 0.8])
    assert tables["sgof"][1]["krg"] == pytest.approx([0.0, 0.9])


def test_table_column_count_mismatch():
    with pytest.raises(ValueError):
        saturation_tables_from_text("SWOF\n 0.1 0.0 1.0 /\n")


def test_table_end_points():
    tables = SaturationTables(saturation_tables_from_text(TABLE_DECK))
    ep = tables.raw_end_points()
    assert tables.num_regions == 2
    assert ep.conn.water[0] == pytest.approx(0.1)
    assert ep.crit.water[0] == pytest.approx(0.2)
    assert ep.smax.water[0] == pytest.approx(0.8)
    assert ep.crit.oil_in_water[0] == pytest.approx(0.2)
    assert ep.conn.gas[0] == pytest.approx(0.0)
    assert ep.crit.gas[0] == pytest.approx(0.05)
    assert ep.smax.gas[0] == pytest.approx(0.9)
    # 1 - Swl - Sg(kro = 0)
    assert ep.crit.oil_in_gas[0] == pytest.approx(0.2)
    assert ep.smax.oil[0] == pytest.approx(0.9)
    assert ep.smax.water[1] == pytest.approx(0.9)


def test_table_evaluators():
    tables = SaturationTables(saturation_tables_from_text(TABLE_DECK))
    krw = tables.evaluator(EPSOptions(FCat.Relperm, SSys.OilWater, Ph.Aqua))
    assert krw(0, 0.35) == pytest.approx(0.15)
    assert krw(0, 0.95) == pytest.approx(0.6)

    pcow = tables.evaluator(EPSOptions(FCat.CapPress, SSys.OilWater, Ph.Aqua))
    assert pcow(0, 0.1) == pytest.approx(3.0e5)

    krow = tables.evaluator(EPSOptions(FCat.Relperm, SSys.OilWater, Ph.Liquid))
    # So = 0.8 -> Sw = 0.2
    assert krow(0, 0.8) == pytest.approx(0.7)


def test_table_pressure_units():
    tables = SaturationTables(saturation_tables_from_text(TABLE_DECK), unit_code=2)
    pcog = tables.evaluator(EPSOptions(FCat.CapPress, SSys.OilGas, Ph.Vapour))
    assert pcog(1, 0.85) == pytest.approx(0.5 * PSI)


def test_table_evaluator_invalid_curve():
    tables = SaturationTables(saturation_tables_from_text(TABLE_DECK))
    with pytest.raises(ValueError):
        tables.evaluator(EPSOptions(FCat.CapPress, SSys.OilWater, Ph.Liquid))


def test_tables_region_count_mismatch():
    tables = {
        "swof": [{"sw": [0.1, 0.9], "krw": [0.0, 1.0], "kro": [1.0, 0.0]}],
        "sgof": [],
    }
    assert SaturationTables(tables).num_regions == 1
    tables["sgof"] = [{"sg": [0.0, 0.9], "krg": [0.0, 1.0], "kro": [1.0, 0.0]}] * 2
    with pytest.raises(ValueError):
        SaturationTables(tables)


def test_tables_feed_function_values():
    from satfunc.create import unscaled_function_values

    tables = SaturationTables(saturation_tables_from_text(TABLE_DECK))
    grid = GridProperties({"num_cells": 2, "keywords": {"KRW": 0.5, "SATNUM": [1, 2]}})
    opt = EPSOptions(FCat.Relperm, SSys.OilWater, Ph.Aqua)
    fvals = unscaled_function_values(grid, tables.raw_end_points(), opt, tables.evaluator(opt))
    assert fvals[0].max.val == pytest.approx(0.6)
    assert fvals[1].max.val == pytest.approx(0.8)
    assert torch.is_tensor(grid.keyword_data("KRW", "global"))


def test_oil_water_critical_point_matches_krow():
    tables = SaturationTables({
        "swof": [{"sw": [0.1, 0.3, 0.6, 0.8], "krw": [0.0, 0.1, 0.4, 0.7],
                  "kro": [1.0, 0.6, 0.1, 0.0]}],
        "sgof": [{"sg": [0.05, 0.5, 0.85], "krg": [0.0, 0.4, 0.9],
                  "kro": [1.0, 0.3, 0.0]}],
    })
    ep = tables.raw_end_points()
    # 1 - Sw(kro = 0) - Sgl
    assert ep.crit.oil_in_water[0] == pytest.approx(0.15)
    krow = tables.evaluator(EPSOptions(FCat.Relperm, SSys.OilWater, Ph.Liquid))
    assert krow(0, ep.crit.oil_in_water[0]) == pytest.approx(0.0)
    krog = tables.evaluator(EPSOptions(FCat.Relperm, SSys.OilGas, Ph.Liquid))
    assert krog(0, ep.crit.oil_in_gas[0]) == pytest.approx(0.0)

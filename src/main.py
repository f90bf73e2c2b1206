import argparse
import json

import torch

from satfunc.create import (
    horizontal_from_grid,
    unscaled_end_points,
    unscaled_function_values,
    vertical_from_grid,
)
from satfunc.deck import grid_config_from_deck, parse_saturation_tables
from satfunc.endpoints import (
    EPSOptions,
    RawTableEndPoints,
    SaturationPoints,
    invalid_endpoint_behaviour,
)
from satfunc.grid import GridProperties, cell_regions
from satfunc.tables import SaturationTables


def main():
    """
    Масштабирование насыщенностей точек по конфигурации.
    """
    args = parse_args()
    config = load_config(args.config)

    print(f"Загружена конфигурация: {config.get('description', 'Без описания')}.")

    grid = build_grid(config.get('grid', {}))
    print(f"  Активных гридов: {len(grid.active_grids)}, ячеек: {grid.num_cells()}")

    tables = build_tables(config.get('tables'), grid.unit_code)
    if tables is not None:
        raw_ep = tables.raw_end_points()
        print(f"  Табличных регионов: {tables.num_regions}")
    else:
        raw_ep = RawTableEndPoints.from_config(config.get('end_points', {}))

    opt = EPSOptions.from_config(config.get('options'))
    invalid = invalid_endpoint_behaviour(config.get('invalid_endpoint', 'use_unscaled'))
    points = SaturationPoints.from_pairs(config.get('points', []))
    direction = config.get('direction', 'eval')

    result = scale_points(grid, raw_ep, opt, invalid, points, direction)
    for pt, s in zip(points, result.tolist()):
        print(f"  ячейка {pt.cell}: {pt.sat:.6f} -> {s:.6f}")

    if config.get('vertical', False):
        if tables is None:
            raise ValueError("Для вертикального масштабирования нужны таблицы SWOF/SGOF")
        values = vertical_values(grid, tables, raw_ep, opt, points, result)
        for pt, v in zip(points, values.tolist()):
            print(f"  ячейка {pt.cell}: значение {v:.6g}")


def parse_args():
    parser = argparse.ArgumentParser(description="Масштабирование концевых точек функций насыщенности")
    parser.add_argument('--config', type=str, required=True, help='Путь к файлу конфигурации .json')
    return parser.parse_args()


def load_config(config_path):
    with open(config_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def build_grid(grid_cfg):
    if 'deck' in grid_cfg:
        grid_cfg = grid_config_from_deck(grid_cfg['deck'], grid_cfg.get('intehead'))
    return GridProperties(grid_cfg)


def build_tables(tables_cfg, unit_code):
    if not tables_cfg:
        return None
    if 'deck' in tables_cfg:
        tables_cfg = parse_saturation_tables(tables_cfg['deck'])
    return SaturationTables(tables_cfg, unit_code=unit_code)


def _region_masks(grid, points):
    regions = cell_regions(grid)[points.cell]
    for r in torch.unique(regions).tolist():
        yield r - 1, regions == r


def scale_points(grid, raw_ep, opt, invalid, points, direction='eval'):
    """Горизонтальное масштабирование точек с учётом региона каждой ячейки."""
    eps = horizontal_from_grid(grid, opt, invalid, verbose=True)
    teps = unscaled_end_points(raw_ep, opt)

    result = torch.empty(len(points), dtype=torch.float64)
    for region, mask in _region_masks(grid, points):
        subset = SaturationPoints(points.cell[mask], points.sat[mask])
        if direction == 'reverse':
            result[mask] = eps.reverse(teps[region], subset)
        else:
            result[mask] = eps.eval(teps[region], subset)
    return result


def vertical_values(grid, tables, raw_ep, opt, points, table_sats):
    """Значения табличной функции в точках после вертикального масштабирования."""
    evaluator = tables.evaluator(opt)
    fvals = unscaled_function_values(grid, raw_ep, opt, evaluator)
    vscale = vertical_from_grid(grid, opt, raw_ep, fvals, verbose=True)

    regions = cell_regions(grid)[points.cell]
    values = torch.tensor(
        [evaluator(int(r) - 1, float(s)) for r, s in zip(regions.tolist(), table_sats.tolist())],
        dtype=torch.float64,
    )

    result = torch.empty(len(points), dtype=torch.float64)
    for region, mask in _region_masks(grid, points):
        subset = SaturationPoints(points.cell[mask], points.sat[mask])
        result[mask] = vscale.vert_scale(fvals[region], subset, values[mask])
    return result


if __name__ == '__main__':
    main()

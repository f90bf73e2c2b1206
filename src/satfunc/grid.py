from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import torch

from .endpoints import DEFAULT_SENTINEL

# Маска активных фаз из заголовка результатов (INTEHEAD)
PHASE_OIL = 1 << 0
PHASE_WATER = 1 << 1
PHASE_GAS = 1 << 2

# Целочисленные ключевые слова (номера регионов)
INTEGER_KEYWORDS = {"SATNUM", "IMBNUM", "PVTNUM", "EQLNUM", "FIPNUM"}


class GridProperties:
    """
    Поставщик свойств сетки по активным гридам (главный грид и LGR).

    Для каждого грида хранятся число активных ячеек и сырые массивы по
    ключевым словам (SWL, SWCR, KRW, ...).  Отсутствующее ключевое слово
    возвращается пустым тензором.

    Формат конфигурации::

        {
            "grids": [{"name": "global", "num_cells": 4,
                       "keywords": {"SWL": [0.1, 0.1, 0.2, 0.2], "SATNUM": 1}}],
            "intehead": {"unit": 1, "phases": 7}
        }

    Упрощённо можно задать один грид полями ``num_cells`` и ``keywords``
    на верхнем уровне.
    """

    def __init__(self, config, device=None):
        self.device = device if device is not None else torch.device('cpu')

        grids_cfg = config.get('grids')
        if grids_cfg is None:
            grids_cfg = [{
                'name': config.get('name', 'global'),
                'num_cells': config.get('num_cells'),
                'keywords': config.get('keywords', {}),
            }]
        if not grids_cfg:
            raise ValueError("GridProperties: не задано ни одного активного грида")

        self._grid_names: List[str] = []
        self._num_cells: Dict[str, int] = {}
        self._data: Dict[str, Dict[str, torch.Tensor]] = {}

        for gcfg in grids_cfg:
            name = str(gcfg.get('name', 'global'))
            if name in self._num_cells:
                raise ValueError(f"GridProperties: грид '{name}' задан дважды")
            nc = gcfg.get('num_cells')
            if nc is None:
                raise ValueError(f"GridProperties: для грида '{name}' не задано num_cells")
            nc = int(nc)
            self._grid_names.append(name)
            self._num_cells[name] = nc
            self._data[name] = {
                kw.upper(): self._create_field(value, nc, f"{name}:{kw.upper()}")
                for kw, value in (gcfg.get('keywords') or {}).items()
            }

        ih = config.get('intehead', {}) or {}
        self.unit_code = int(ih.get('unit', 1))
        self.phase_mask = int(ih.get('phases', PHASE_OIL | PHASE_WATER | PHASE_GAS))

    @property
    def active_grids(self) -> List[str]:
        return list(self._grid_names)

    @property
    def oil_active(self) -> bool:
        return (self.phase_mask & PHASE_OIL) != 0

    def num_cells(self, grid: Optional[str] = None) -> int:
        if grid is None:
            return sum(self._num_cells.values())
        return self._num_cells[grid]

    def have_keyword_data(self, keyword: str, grid: Optional[str] = None) -> bool:
        kw = keyword.upper()
        if grid is None:
            return any(kw in self._data[g] for g in self._grid_names)
        return kw in self._data[grid]

    def keyword_data(self, keyword: str, grid: str) -> torch.Tensor:
        kw = keyword.upper()
        arr = self._data[grid].get(kw)
        if arr is None:
            dtype = torch.long if kw in INTEGER_KEYWORDS else torch.float64
            return torch.empty(0, dtype=dtype, device=self.device)
        return arr.clone()

    def raw_linearised_cell_data(self, keyword: str) -> torch.Tensor:
        """Склеивает массив ключевого слова по всем активным гридам, где он есть."""
        kw = keyword.upper()
        parts = [self._data[g][kw] for g in self._grid_names if kw in self._data[g]]
        if not parts:
            dtype = torch.long if kw in INTEGER_KEYWORDS else torch.float64
            return torch.empty(0, dtype=dtype, device=self.device)
        return torch.cat(parts).clone()

    def _create_field(self, value, n: int, name: str) -> torch.Tensor:
        """
        Создает тензор свойства из скаляра, списка или файла .npy/.npz.
        """
        kw = name.split(':')[-1]
        dtype = np.int64 if kw in INTEGER_KEYWORDS else np.float64
        if isinstance(value, (int, float)):
            arr = np.full(n, value, dtype=dtype)
        elif isinstance(value, str):
            path = Path(value)
            if not path.exists():
                raise FileNotFoundError(f"{name}: файл '{value}' не найден")
            if path.suffix.lower() == '.npy':
                arr = np.load(path)
            elif path.suffix.lower() == '.npz':
                with np.load(path) as data:
                    arr = data[data.files[0]]
            else:
                raise ValueError(f"{name}: неподдерживаемый формат '{path.suffix}'")
        elif isinstance(value, (list, tuple, np.ndarray, torch.Tensor)):
            arr = np.asarray(value)
        else:
            raise ValueError(f"{name}: неподдерживаемый тип {type(value)}")
        arr = np.asarray(arr, dtype=dtype).reshape(-1)
        if arr.shape[0] != n:
            raise ValueError(f"{name}: ожидается {n} значений, получено {arr.shape[0]}")
        return torch.from_numpy(arr).to(self.device)


def _identity(x):
    return x


def grid_defaulted_vector(grid: GridProperties,
                          keyword: str,
                          dflt: Sequence[float],
                          convert: Optional[Callable] = None) -> torch.Tensor:
    """
    Массив значения ключевого слова по всем активным ячейкам.

    Если в ячейке значение задано (|v| < 1e20), берётся оно (через
    ``convert``), иначе значение по умолчанию для региона SATNUM ячейки.
    SATNUM по умолчанию равен 1.
    """
    cvrt = convert if convert is not None else _identity
    dflt_t = torch.as_tensor(dflt, dtype=torch.float64, device=grid.device).reshape(-1)
    if dflt_t.numel() == 0:
        raise ValueError(f"{keyword}: пустой массив значений по умолчанию")

    parts = []
    for gname in grid.active_grids:
        nc = grid.num_cells(gname)

        if grid.have_keyword_data('SATNUM', gname):
            snum = grid.keyword_data('SATNUM', gname).to(torch.long)
        else:
            snum = torch.ones(nc, dtype=torch.long, device=grid.device)

        if grid.have_keyword_data(keyword, gname):
            val = grid.keyword_data(keyword, gname).to(torch.float64)
        else:
            val = torch.full((nc,), -1.0e21, dtype=torch.float64, device=grid.device)

        if nc > 0 and (int(snum.min()) < 1 or int(snum.max()) > dflt_t.numel()):
            raise ValueError(
                f"{keyword}: SATNUM вне диапазона 1..{dflt_t.numel()} в гриде '{gname}'"
            )

        region_dflt = dflt_t[snum - 1]
        defined = val.abs() < DEFAULT_SENTINEL
        # convert применяется только к заданным значениям
        converted = cvrt(torch.where(defined, val, torch.zeros_like(val)))
        parts.append(torch.where(defined, converted, region_dflt))

    if not parts:
        return torch.empty(0, dtype=torch.float64, device=grid.device)
    return torch.cat(parts)


def cell_regions(grid: GridProperties) -> torch.Tensor:
    """Номер региона SATNUM (с 1) для каждой активной ячейки."""
    parts = []
    for gname in grid.active_grids:
        if grid.have_keyword_data('SATNUM', gname):
            parts.append(grid.keyword_data('SATNUM', gname).to(torch.long))
        else:
            parts.append(torch.ones(grid.num_cells(gname), dtype=torch.long, device=grid.device))
    return torch.cat(parts)

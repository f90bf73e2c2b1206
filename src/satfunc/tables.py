from typing import Callable, Dict, List

import numpy as np

from .endpoints import (
    ConnateSaturations,
    CriticalSaturations,
    EPSOptions,
    FunctionCategory,
    MaximumSaturations,
    PhaseIndex,
    RawTableEndPoints,
    SubSystem,
)
from .units import create_unit_system


def _as_np(seq):
    return np.asarray(seq, dtype=np.float64)


def _largest_zero(s: np.ndarray, kr: np.ndarray) -> float:
    """Наибольшая насыщенность, при которой kr ещё равна нулю."""
    zero = np.nonzero(kr <= 0.0)[0]
    if zero.size == 0:
        return float(s[0])
    return float(s[zero[-1]])


def _smallest_zero(s: np.ndarray, kr: np.ndarray) -> float:
    zero = np.nonzero(kr <= 0.0)[0]
    if zero.size == 0:
        return float(s[-1])
    return float(s[zero[0]])


class SaturationTables:
    """
    Табличные функции насыщенности SWOF/SGOF по регионам SATNUM.

    Используется как внешний вычислитель kr/Pc для подготовки входных
    данных вертикального масштабирования; само масштабирование таблицы
    не вычисляет.
    """

    def __init__(self, tables: Dict[str, List[dict]], unit_code: int = 1):
        pscale = create_unit_system(unit_code).pressure()
        self.swof: List[Dict[str, np.ndarray]] = []
        self.sgof: List[Dict[str, np.ndarray]] = []

        for tbl in tables.get('swof', []) or []:
            sw = _as_np(tbl['sw'])
            self.swof.append({
                'sw': sw,
                'krw': _as_np(tbl['krw']),
                'kro': _as_np(tbl['kro']),
                'pcow': _as_np(tbl.get('pcow', [0.0] * len(sw))) * pscale,
            })
        for tbl in tables.get('sgof', []) or []:
            sg = _as_np(tbl['sg'])
            self.sgof.append({
                'sg': sg,
                'krg': _as_np(tbl['krg']),
                'kro': _as_np(tbl['kro']),
                'pcog': _as_np(tbl.get('pcog', [0.0] * len(sg))) * pscale,
            })

        if not self.swof and not self.sgof:
            raise ValueError("SaturationTables: не заданы таблицы SWOF/SGOF")
        if self.swof and self.sgof and len(self.swof) != len(self.sgof):
            raise ValueError(
                f"SaturationTables: число регионов SWOF ({len(self.swof)}) "
                f"не совпадает с SGOF ({len(self.sgof)})"
            )
        for i, tbl in enumerate(self.swof):
            if not (len(tbl['sw']) == len(tbl['krw']) == len(tbl['kro']) == len(tbl['pcow'])):
                raise ValueError(f"SWOF регион {i + 1}: длины столбцов не совпадают")
        for i, tbl in enumerate(self.sgof):
            if not (len(tbl['sg']) == len(tbl['krg']) == len(tbl['kro']) == len(tbl['pcog'])):
                raise ValueError(f"SGOF регион {i + 1}: длины столбцов не совпадают")

        self._ep = self._extract_end_points()

    @property
    def num_regions(self) -> int:
        return max(len(self.swof), len(self.sgof))

    def raw_end_points(self) -> RawTableEndPoints:
        return self._ep

    def _extract_end_points(self) -> RawTableEndPoints:
        n = self.num_regions
        conn = ConnateSaturations(water=[0.0] * n, gas=[0.0] * n)
        crit = CriticalSaturations(water=[0.0] * n, gas=[0.0] * n,
                                   oil_in_water=[0.0] * n, oil_in_gas=[0.0] * n)
        smax = MaximumSaturations(water=[1.0] * n, gas=[0.0] * n, oil=[1.0] * n)

        for i, tbl in enumerate(self.swof):
            sw = tbl['sw']
            conn.water[i] = float(sw[0])
            smax.water[i] = float(sw[-1])
            crit.water[i] = _largest_zero(sw, tbl['krw'])

        for i, tbl in enumerate(self.sgof):
            sg = tbl['sg']
            conn.gas[i] = float(sg[0])
            smax.gas[i] = float(sg[-1])
            crit.gas[i] = _largest_zero(sg, tbl['krg'])
            crit.oil_in_gas[i] = 1.0 - conn.water[i] - _smallest_zero(sg, tbl['kro'])

        for i in range(n):
            smax.oil[i] = 1.0 - conn.water[i] - conn.gas[i]

        # So = 1 - Sw - Sgl, как в krow: наибольшая So при kro == 0
        for i, tbl in enumerate(self.swof):
            crit.oil_in_water[i] = 1.0 - _smallest_zero(tbl['sw'], tbl['kro']) - conn.gas[i]

        return RawTableEndPoints(conn=conn, crit=crit, smax=smax)

    # ---- вычислители функций ----
    def _swof(self, region: int) -> Dict[str, np.ndarray]:
        if not self.swof:
            raise ValueError("Таблица SWOF не задана")
        return self.swof[region]

    def _sgof(self, region: int) -> Dict[str, np.ndarray]:
        if not self.sgof:
            raise ValueError("Таблица SGOF не задана")
        return self.sgof[region]

    @staticmethod
    def _interp(x: float, xp: np.ndarray, fp: np.ndarray) -> float:
        return float(np.interp(x, xp, fp, left=fp[0], right=fp[-1]))

    def krw(self, region: int, sw: float) -> float:
        t = self._swof(region)
        return self._interp(sw, t['sw'], t['krw'])

    def krow(self, region: int, so: float) -> float:
        t = self._swof(region)
        sw = 1.0 - so - self._ep.conn.gas[region]
        return self._interp(sw, t['sw'], t['kro'])

    def pcow(self, region: int, sw: float) -> float:
        t = self._swof(region)
        return self._interp(sw, t['sw'], t['pcow'])

    def krg(self, region: int, sg: float) -> float:
        t = self._sgof(region)
        return self._interp(sg, t['sg'], t['krg'])

    def krog(self, region: int, so: float) -> float:
        t = self._sgof(region)
        sg = 1.0 - so - self._ep.conn.water[region]
        return self._interp(sg, t['sg'], t['kro'])

    def pcog(self, region: int, sg: float) -> float:
        t = self._sgof(region)
        return self._interp(sg, t['sg'], t['pcog'])

    def evaluator(self, opt: EPSOptions) -> Callable[[int, float], float]:
        """Функция (регион, насыщенность) -> значение для заданной кривой."""
        table = {
            (FunctionCategory.Relperm, SubSystem.OilWater, PhaseIndex.Aqua): self.krw,
            (FunctionCategory.Relperm, SubSystem.OilWater, PhaseIndex.Liquid): self.krow,
            (FunctionCategory.Relperm, SubSystem.OilGas, PhaseIndex.Liquid): self.krog,
            (FunctionCategory.Relperm, SubSystem.OilGas, PhaseIndex.Vapour): self.krg,
            (FunctionCategory.CapPress, SubSystem.OilWater, PhaseIndex.Aqua): self.pcow,
            (FunctionCategory.CapPress, SubSystem.OilGas, PhaseIndex.Aqua): self.pcow,
            (FunctionCategory.CapPress, SubSystem.OilWater, PhaseIndex.Vapour): self.pcog,
            (FunctionCategory.CapPress, SubSystem.OilGas, PhaseIndex.Vapour): self.pcog,
        }
        func = table.get(opt.key)
        if func is None:
            raise ValueError(
                f"Нет табличной функции для {opt.curve.name}/{opt.subsys.name}/{opt.this_phase.name}"
            )
        return func


from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence

import torch


# Значение-заглушка для незаданных (defaulted) величин в ECL результатах
DEFAULT_SENTINEL = 1.0e20


class InvalidEndpointBehaviour(Enum):
    """Что делать, если масштабированные концевые точки ячейки некорректны."""
    UseUnscaled = 'use_unscaled'
    IgnorePoint = 'ignore_point'


class FunctionCategory(Enum):
    Relperm = 'relperm'
    CapPress = 'cappress'


class SubSystem(Enum):
    OilWater = 'oil_water'
    OilGas = 'oil_gas'


class PhaseIndex(Enum):
    Aqua = 'aqua'
    Liquid = 'liquid'
    Vapour = 'vapour'


def _enum_from(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    key = str(value).strip().lower()
    for member in enum_cls:
        if key in (member.value, member.name.lower()):
            return member
    raise ValueError(f"{enum_cls.__name__}: неизвестное значение '{value}'")


@dataclass(frozen=True)
class TableEndPoints:
    """Узлы немасштабированной таблицы: low <= disp <= high.

    Для двухточечного масштабирования disp совпадает с low.
    """
    low: float
    disp: float
    high: float


@dataclass(frozen=True)
class SaturationPoint:
    cell: int
    sat: float


class SaturationPoints:
    """
    Пакет точек вычисления: индексы ячеек и насыщенности.

    Хранится как два тензора одинаковой длины, чтобы законы
    масштабирования работали векторно.
    """

    def __init__(self, cell, sat):
        self.cell = torch.as_tensor(cell, dtype=torch.long).reshape(-1)
        self.sat = torch.as_tensor(sat, dtype=torch.float64).reshape(-1)
        if self.cell.numel() != self.sat.numel():
            raise ValueError(
                f"SaturationPoints: число ячеек ({self.cell.numel()}) "
                f"не совпадает с числом насыщенностей ({self.sat.numel()})"
            )
        if self.cell.numel() > 0 and int(self.cell.min()) < 0:
            raise ValueError(f"SaturationPoints: отрицательный индекс ячейки {int(self.cell.min())}")

    @classmethod
    def from_pairs(cls, pairs: Iterable) -> 'SaturationPoints':
        cells: List[int] = []
        sats: List[float] = []
        for p in pairs:
            if isinstance(p, SaturationPoint):
                cells.append(p.cell)
                sats.append(p.sat)
            else:
                c, s = p
                cells.append(int(c))
                sats.append(float(s))
        return cls(cells, sats)

    def to(self, device) -> 'SaturationPoints':
        return SaturationPoints(self.cell.to(device), self.sat.to(device))

    def __len__(self):
        return self.cell.numel()

    def __iter__(self):
        for c, s in zip(self.cell.tolist(), self.sat.tolist()):
            yield SaturationPoint(c, s)


def as_points(sp) -> SaturationPoints:
    if isinstance(sp, SaturationPoints):
        return sp
    return SaturationPoints.from_pairs(sp)


@dataclass
class FunctionValue:
    sat: float = 0.0
    val: float = 0.0


@dataclass
class FunctionValues:
    """Значения табличной функции в узлах вытеснения (disp) и максимума (max)."""
    disp: FunctionValue = field(default_factory=FunctionValue)
    max: FunctionValue = field(default_factory=FunctionValue)


@dataclass
class ConnateSaturations:
    water: List[float] = field(default_factory=list)
    gas: List[float] = field(default_factory=list)


@dataclass
class CriticalSaturations:
    water: List[float] = field(default_factory=list)
    gas: List[float] = field(default_factory=list)
    oil_in_water: List[float] = field(default_factory=list)
    oil_in_gas: List[float] = field(default_factory=list)


@dataclass
class MaximumSaturations:
    water: List[float] = field(default_factory=list)
    gas: List[float] = field(default_factory=list)
    oil: List[float] = field(default_factory=list)


@dataclass
class RawTableEndPoints:
    """Концевые точки таблиц по регионам насыщенности (SATNUM)."""
    conn: ConnateSaturations = field(default_factory=ConnateSaturations)
    crit: CriticalSaturations = field(default_factory=CriticalSaturations)
    smax: MaximumSaturations = field(default_factory=MaximumSaturations)

    @classmethod
    def from_config(cls, cfg: dict) -> 'RawTableEndPoints':
        conn = cfg.get('conn', {}) or {}
        crit = cfg.get('crit', {}) or {}
        smax = cfg.get('smax', {}) or {}
        return cls(
            conn=ConnateSaturations(
                water=list(conn.get('water', [])),
                gas=list(conn.get('gas', [])),
            ),
            crit=CriticalSaturations(
                water=list(crit.get('water', [])),
                gas=list(crit.get('gas', [])),
                oil_in_water=list(crit.get('oil_in_water', [])),
                oil_in_gas=list(crit.get('oil_in_gas', [])),
            ),
            smax=MaximumSaturations(
                water=list(smax.get('water', [])),
                gas=list(smax.get('gas', [])),
                oil=list(smax.get('oil', [])),
            ),
        )


@dataclass(frozen=True)
class EPSOptions:
    curve: FunctionCategory = FunctionCategory.Relperm
    subsys: SubSystem = SubSystem.OilWater
    this_phase: PhaseIndex = PhaseIndex.Aqua
    use_3pt: bool = False

    @property
    def key(self):
        return (self.curve, self.subsys, self.this_phase)

    @classmethod
    def from_config(cls, cfg: Optional[dict]) -> 'EPSOptions':
        cfg = cfg or {}
        return cls(
            curve=_enum_from(FunctionCategory, cfg.get('curve', 'relperm')),
            subsys=_enum_from(SubSystem, cfg.get('subsys', 'oil_water')),
            this_phase=_enum_from(PhaseIndex, cfg.get('phase', 'aqua')),
            use_3pt=bool(cfg.get('use_3pt', False)),
        )


def invalid_endpoint_behaviour(value) -> InvalidEndpointBehaviour:
    return _enum_from(InvalidEndpointBehaviour, value)


def unscaled_two_point(smin: Sequence[float], smax: Sequence[float]) -> List[TableEndPoints]:
    if len(smin) == 0 or len(smin) != len(smax):
        raise ValueError(
            f"Концевые точки таблиц: пустые или разной длины массивы "
            f"(min={len(smin)}, max={len(smax)})"
        )
    # В двухточечной схеме узел disp не используется
    return [TableEndPoints(float(lo), float(lo), float(hi)) for lo, hi in zip(smin, smax)]


def unscaled_three_point(smin: Sequence[float], sdisp: Sequence[float],
                         smax: Sequence[float]) -> List[TableEndPoints]:
    if len(smin) == 0 or not (len(smin) == len(sdisp) == len(smax)):
        raise ValueError(
            f"Концевые точки таблиц: пустые или разной длины массивы "
            f"(min={len(smin)}, disp={len(sdisp)}, max={len(smax)})"
        )
    return [TableEndPoints(float(lo), float(r), float(hi))
            for lo, r, hi in zip(smin, sdisp, smax)]

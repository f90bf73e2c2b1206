import copy

import torch

from .endpoints import (
    DEFAULT_SENTINEL,
    InvalidEndpointBehaviour,
    TableEndPoints,
    as_points,
)


def _as_cell_array(values, device) -> torch.Tensor:
    return torch.as_tensor(values, dtype=torch.float64).reshape(-1).clone().to(device)


def defaulted_scaled_saturation(s: torch.Tensor, dflt: float) -> torch.Tensor:
    """
    Масштабированная насыщенность ячейки, если она задана (|s| < 1e20),
    иначе немасштабированное значение из таблицы.
    """
    return torch.where(s.abs() < DEFAULT_SENTINEL, s, torch.full_like(s, float(dflt)))


def valid_saturations(*sats: torch.Tensor) -> torch.Tensor:
    """Все точки в [0, 1] и упорядочены по неубыванию (равенство допустимо)."""
    ok = torch.ones_like(sats[0], dtype=torch.bool)
    for s in sats:
        ok = ok & ~(s < 0.0) & ~(s > 1.0)
    for lo, hi in zip(sats[:-1], sats[1:]):
        ok = ok & ~(lo > hi)
    return ok


class HorizontalScaling:
    """
    Общая часть двух- и трёхточечного горизонтального масштабирования.

    Массивы концевых точек принадлежат экземпляру и после конструирования
    не изменяются; ``clone`` делает глубокую копию.
    """

    def __init__(self, invalid=InvalidEndpointBehaviour.UseUnscaled, device=None):
        self.device = device if device is not None else torch.device('cpu')
        self.invalid = InvalidEndpointBehaviour(invalid)

    def _handle_invalid(self, ok: torch.Tensor, sat: torch.Tensor, result: torch.Tensor) -> torch.Tensor:
        if self.invalid == InvalidEndpointBehaviour.UseUnscaled:
            fallback = sat
        else:
            # NaN сигнализирует потребителю, что точку нужно исключить
            fallback = torch.full_like(sat, float('nan'))
        return torch.where(ok, result, fallback)

    def clone(self):
        return copy.deepcopy(self)

    def eval(self, tep: TableEndPoints, sp) -> torch.Tensor:
        raise NotImplementedError

    def reverse(self, tep: TableEndPoints, sp) -> torch.Tensor:
        raise NotImplementedError


class TwoPointScaling(HorizontalScaling):
    """Двухточечное масштабирование: [sLO, sHI] <-> [tep.low, tep.high]."""

    def __init__(self, smin, smax, invalid=InvalidEndpointBehaviour.UseUnscaled, device=None):
        super().__init__(invalid, device)
        self._smin = _as_cell_array(smin, self.device)
        self._smax = _as_cell_array(smax, self.device)
        if self._smin.numel() != self._smax.numel():
            raise ValueError("Size Mismatch Between Minimum and Maximum Saturation Arrays")

    @property
    def num_cells(self) -> int:
        return self._smin.numel()

    def _bounds(self, tep, cell):
        s_lo = defaulted_scaled_saturation(self._smin[cell], tep.low)
        s_hi = defaulted_scaled_saturation(self._smax[cell], tep.high)
        return s_lo, s_hi

    def eval(self, tep: TableEndPoints, sp) -> torch.Tensor:
        """Масштабированная (модельная) насыщенность -> табличная."""
        pts = as_points(sp).to(self.device)
        s = pts.sat
        s_lo, s_hi = self._bounds(tep, pts.cell)

        srng = tep.high - tep.low
        interior = tep.low + ((s - s_lo) / (s_hi - s_lo)) * srng

        low = torch.full_like(s, tep.low)
        high = torch.full_like(s, tep.high)
        s_eff = torch.where(~(s > s_lo), low,
                            torch.where(~(s < s_hi), high, interior))

        return self._handle_invalid(valid_saturations(s_lo, s_hi), s, s_eff)

    def reverse(self, tep: TableEndPoints, sp) -> torch.Tensor:
        """Табличная насыщенность -> масштабированная насыщенность ячейки."""
        pts = as_points(sp).to(self.device)
        s = pts.sat
        s_lo, s_hi = self._bounds(tep, pts.cell)

        t = (s - tep.low) / (tep.high - tep.low)
        interior = s_lo + t * (s_hi - s_lo)

        s_unsc = torch.where(~(s > tep.low), s_lo,
                             torch.where(~(s < tep.high), s_hi, interior))

        return self._handle_invalid(valid_saturations(s_lo, s_hi), s, s_unsc)


class ThreePointScaling(HorizontalScaling):
    """
    Трёхточечное масштабирование с промежуточным узлом вытеснения.

    Отрезок [sLO, sR] отображается на [tep.low, tep.disp],
    отрезок [sR, sHI] на [tep.disp, tep.high].
    """

    def __init__(self, smin, sdisp, smax, invalid=InvalidEndpointBehaviour.UseUnscaled, device=None):
        super().__init__(invalid, device)
        self._smin = _as_cell_array(smin, self.device)
        self._sdisp = _as_cell_array(sdisp, self.device)
        self._smax = _as_cell_array(smax, self.device)
        if (self._sdisp.numel() != self._smin.numel()) or \
           (self._sdisp.numel() != self._smax.numel()):
            raise ValueError(
                "Size Mismatch Between Minimum, Displacing and Maximum Saturation Arrays"
            )

    @property
    def num_cells(self) -> int:
        return self._smin.numel()

    def _bounds(self, tep, cell):
        s_lo = defaulted_scaled_saturation(self._smin[cell], tep.low)
        s_r = defaulted_scaled_saturation(self._sdisp[cell], tep.disp)
        s_hi = defaulted_scaled_saturation(self._smax[cell], tep.high)
        return s_lo, s_r, s_hi

    def eval(self, tep: TableEndPoints, sp) -> torch.Tensor:
        pts = as_points(sp).to(self.device)
        s = pts.sat
        s_lo, s_r, s_hi = self._bounds(tep, pts.cell)

        # s in (sLO, sR)
        t_left = (s - s_lo) / (s_r - s_lo)
        left = tep.low + t_left * (tep.disp - tep.low)

        # s in [sR, sHI)
        t_right = (s - s_r) / (s_hi - s_r)
        right = tep.disp + t_right * (tep.high - tep.disp)

        low = torch.full_like(s, tep.low)
        high = torch.full_like(s, tep.high)
        s_eff = torch.where(~(s > s_lo), low,
                            torch.where(~(s < s_hi), high,
                                        torch.where(s < s_r, left, right)))

        return self._handle_invalid(valid_saturations(s_lo, s_r, s_hi), s, s_eff)

    def reverse(self, tep: TableEndPoints, sp) -> torch.Tensor:
        pts = as_points(sp).to(self.device)
        s = pts.sat
        s_lo, s_r, s_hi = self._bounds(tep, pts.cell)

        t_left = (s - tep.low) / (tep.disp - tep.low)
        left = s_lo + t_left * (s_r - s_lo)

        t_right = (s - tep.disp) / (tep.high - tep.disp)
        right = s_r + t_right * (s_hi - s_r)

        s_unsc = torch.where(~(s > tep.low), s_lo,
                             torch.where(~(s < tep.high), s_hi,
                                         torch.where(s < tep.disp, left, right)))

        return self._handle_invalid(valid_saturations(s_lo, s_r, s_hi), s, s_unsc)

import copy

import torch

from .endpoints import FunctionValues, as_points


def _as_cell_array(values, device) -> torch.Tensor:
    return torch.as_tensor(values, dtype=torch.float64).reshape(-1).clone().to(device)


class VerticalScaling:
    """Общий интерфейс вертикального масштабирования значений функции."""

    def __init__(self, device=None):
        self.device = device if device is not None else torch.device('cpu')

    def _prepare(self, sp, val):
        pts = as_points(sp).to(self.device)
        y = torch.as_tensor(val, dtype=torch.float64).reshape(-1).to(self.device)
        if pts.cell.numel() != y.numel():
            raise ValueError(
                f"Vertical Scaling: число точек ({pts.cell.numel()}) "
                f"не совпадает с числом значений ({y.numel()})"
            )
        return pts, y

    def clone(self):
        return copy.deepcopy(self)

    def vert_scale(self, f: FunctionValues, sp, val) -> torch.Tensor:
        raise NotImplementedError


class PureVerticalScaling(VerticalScaling):
    """
    Пропорциональное масштабирование: y *= fmax[cell] / f.max.val.
    """

    def __init__(self, fmax, device=None):
        super().__init__(device)
        self._fmax = _as_cell_array(fmax, self.device)

    @property
    def num_cells(self) -> int:
        return self._fmax.numel()

    def vert_scale(self, f: FunctionValues, sp, val) -> torch.Tensor:
        pts, y = self._prepare(sp, val)
        return y * (self._fmax[pts.cell] / f.max.val)


class CritSatVerticalScaling(VerticalScaling):
    """
    Вертикальное масштабирование с учётом критической насыщенности.

    Слева от масштабированной насыщенности вытеснения sdisp[cell] значение
    просто умножается на fdisp[cell]/fdisp(table).  Справа значение
    переносится с отрезка [fdisp(table), fmax(table)] на
    [fdisp[cell], fmax[cell]].  Если значения таблицы в узлах совпадают,
    параметром интерполяции служит насыщенность; если вырождены и
    насыщенности, результат равен fmax[cell].
    """

    def __init__(self, sdisp, fdisp, fmax, device=None):
        super().__init__(device)
        self._sdisp = _as_cell_array(sdisp, self.device)
        self._fdisp = _as_cell_array(fdisp, self.device)
        self._fmax = _as_cell_array(fmax, self.device)
        if (self._sdisp.numel() != self._fdisp.numel()) or \
           (self._sdisp.numel() != self._fmax.numel()):
            raise ValueError(
                "Size Mismatch Between Displacing Saturation, Displacing Value "
                "and Maximum Value Arrays"
            )

    @property
    def num_cells(self) -> int:
        return self._sdisp.numel()

    def vert_scale(self, f: FunctionValues, sp, val) -> torch.Tensor:
        pts, y = self._prepare(sp, val)

        fdisp, sdisp = f.disp.val, f.disp.sat
        fmax, smax = f.max.val, f.max.sat
        sepfv = fmax > fdisp
        sep_s = sdisp > smax

        s = pts.sat
        sr = self._sdisp[pts.cell]
        fr = self._fdisp[pts.cell]
        fm = self._fmax[pts.cell]

        left = y * (fr / fdisp)

        if sepfv:
            # Kr(Smax) > Kr(Sr)
            t = (y - fdisp) / (fmax - fdisp)
            right = fr + t * (fm - fr)
        elif sep_s:
            # Kr(Smax) == Kr(Sr): линейно по насыщенности
            t = (s - sdisp) / (smax - sdisp)
            right = fr + t * (fm - fr)
        else:
            # Smax == Sr, берём fmax[cell]
            right = fm.clone()

        return torch.where(~(s > sr), left, right)

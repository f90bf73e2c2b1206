"""
Построение законов масштабирования концевых точек по данным сетки.

Выбор закона задаётся таблицами решений по кортежу
(категория кривой, подсистема, фаза): каждой допустимой комбинации
соответствует функция-построитель, каждой недопустимой сообщение об ошибке.
"""
from dataclasses import replace
from typing import Callable, List, Sequence

import torch

from .endpoints import (
    EPSOptions,
    FunctionCategory as FCat,
    FunctionValue,
    FunctionValues,
    InvalidEndpointBehaviour,
    PhaseIndex as Ph,
    RawTableEndPoints,
    SubSystem as SSys,
    TableEndPoints,
    unscaled_three_point,
    unscaled_two_point,
)
from .grid import GridProperties, grid_defaulted_vector
from .horizontal import HorizontalScaling, ThreePointScaling, TwoPointScaling
from .units import convert_from, create_unit_system
from .vertical import CritSatVerticalScaling, PureVerticalScaling, VerticalScaling


def _describe(opt: EPSOptions) -> str:
    return f"{opt.curve.name}/{opt.subsys.name}/{opt.this_phase.name}"


def _cell_data(grid: GridProperties, keyword: str) -> torch.Tensor:
    return grid.raw_linearised_cell_data(keyword).to(torch.float64)


def _required(grid: GridProperties, message: str, *keywords: str) -> List[torch.Tensor]:
    """Обязательные массивы: каждый должен покрывать все активные ячейки."""
    n = grid.num_cells()
    arrays = [_cell_data(grid, kw) for kw in keywords]
    if any(a.numel() != n for a in arrays):
        raise ValueError(message)
    return arrays


def _subtract_optional(target: torch.Tensor, grid: GridProperties,
                       keyword: str, message: str) -> torch.Tensor:
    """Вычитает необязательный массив, если он задан во всех ячейках."""
    arr = _cell_data(grid, keyword)
    if arr.numel() == target.numel():
        return target - arr
    if arr.numel() != 0:
        raise ValueError(message)
    return target


# ---------------------------------------------------------------------
# Двухточечное горизонтальное масштабирование
# ---------------------------------------------------------------------

def _two_point_kr_w(grid, invalid, device):
    swcr, swu = _required(grid, "Missing Water End-Point Specifications (SWCR and/or SWU)",
                          "SWCR", "SWU")
    return TwoPointScaling(swcr, swu, invalid, device)


def _two_point_kr_g(grid, invalid, device):
    sgcr, sgu = _required(grid, "Missing or Mismatching Gas End-Point Specifications (SGCR and/or SGU)",
                          "SGCR", "SGU")
    return TwoPointScaling(sgcr, sgu, invalid, device)


def _max_oil_saturation(grid, required_kw, optional_kw, system):
    # So_max = 1 - S_conn обязательной фазы - S_conn второй фазы (если задана)
    conn, = _required(grid, f"Missing or Mismatching Connate {_PHASE_NAME[required_kw]} "
                            f"Saturation in {system} System", required_kw)
    smax = torch.ones(grid.num_cells(), dtype=torch.float64, device=grid.device) - conn
    return _subtract_optional(smax, grid, optional_kw,
                              f"Mismatching Connate {_PHASE_NAME[optional_kw]} "
                              f"Saturation in {system} System")


_PHASE_NAME = {"SWL": "Water", "SGL": "Gas"}


def _two_point_kr_ow(grid, invalid, device):
    sowcr, = _required(grid, "Missing or Mismatching Critical Oil Saturation in Oil/Water System",
                       "SOWCR")
    smax = _max_oil_saturation(grid, "SWL", "SGL", "Oil/Water")
    return TwoPointScaling(sowcr, smax, invalid, device)


def _two_point_kr_og(grid, invalid, device):
    sogcr, = _required(grid, "Missing or Mismatching Critical Oil Saturation in Oil/Gas System",
                       "SOGCR")
    smax = _max_oil_saturation(grid, "SGL", "SWL", "Oil/Gas")
    return TwoPointScaling(sogcr, smax, invalid, device)


def _connate_for_pc(grid, pc_kw, kw):
    # Сначала отдельное значение для Pc, затем общее
    arr = _cell_data(grid, pc_kw)
    if arr.numel() == 0:
        arr = _cell_data(grid, kw)
    return arr


def _two_point_pc_ow(grid, invalid, device):
    swl = _connate_for_pc(grid, "SWLPC", "SWL")
    swu = _cell_data(grid, "SWU")
    if swl.numel() != swu.numel() or swl.numel() != grid.num_cells():
        raise ValueError("Missing or Mismatching Connate or Maximum Water Saturation in Pcow EPS")
    return TwoPointScaling(swl, swu, invalid, device)


def _two_point_pc_go(grid, invalid, device):
    sgl = _connate_for_pc(grid, "SGLPC", "SGL")
    sgu = _cell_data(grid, "SGU")
    if sgl.numel() != sgu.numel() or sgl.numel() != grid.num_cells():
        raise ValueError("Missing or Mismatching Connate or Maximum Gas Saturation in Pcgo EPS")
    return TwoPointScaling(sgl, sgu, invalid, device)


_TWO_POINT = {
    (FCat.Relperm, SSys.OilWater, Ph.Aqua): _two_point_kr_w,
    (FCat.Relperm, SSys.OilWater, Ph.Liquid): _two_point_kr_ow,
    (FCat.Relperm, SSys.OilWater, Ph.Vapour):
        "Cannot Create an EPS for Gas Relperm in an Oil/Water System",
    (FCat.Relperm, SSys.OilGas, Ph.Aqua):
        "Cannot Create an EPS for Water Relperm in an Oil/Gas System",
    (FCat.Relperm, SSys.OilGas, Ph.Liquid): _two_point_kr_og,
    (FCat.Relperm, SSys.OilGas, Ph.Vapour): _two_point_kr_g,
    (FCat.CapPress, SSys.OilWater, Ph.Aqua): _two_point_pc_ow,
    (FCat.CapPress, SSys.OilGas, Ph.Aqua): _two_point_pc_ow,
    (FCat.CapPress, SSys.OilWater, Ph.Vapour): _two_point_pc_go,
    (FCat.CapPress, SSys.OilGas, Ph.Vapour): _two_point_pc_go,
    (FCat.CapPress, SSys.OilWater, Ph.Liquid):
        "Creating Capillary Pressure EPS as a Function of Oil Saturation is not Supported",
    (FCat.CapPress, SSys.OilGas, Ph.Liquid):
        "Creating Capillary Pressure EPS as a Function of Oil Saturation is not Supported",
}


# ---------------------------------------------------------------------
# Трёхточечное горизонтальное масштабирование (только Kr)
# ---------------------------------------------------------------------

def _three_point_kr_w(grid, invalid, device):
    swcr, swu = _required(grid, "Missing Water End-Point Specifications (SWCR and/or SWU)",
                          "SWCR", "SWU")
    sdisp = torch.ones_like(swcr)
    sdisp = _subtract_optional(sdisp, grid, "SOWCR",
                               "Missing or Mismatching Scaled Critical Oil Saturation in Oil/Water System")
    sdisp = _subtract_optional(sdisp, grid, "SGL",
                               "Missing or Mismatching Scaled Connate Gas Saturation in Oil/Water System")
    return ThreePointScaling(swcr, sdisp, swu, invalid, device)


def _three_point_kr_g(grid, invalid, device):
    sgcr, sgu = _required(grid, "Missing or Mismatching Gas End-Point Specifications (SGCR and/or SGU)",
                          "SGCR", "SGU")
    sdisp = torch.ones_like(sgcr)
    sdisp = _subtract_optional(sdisp, grid, "SWL",
                               "Connate Water Saturation Array Mismatch in Three-Point Scaling Option")
    sdisp = _subtract_optional(sdisp, grid, "SOGCR",
                               "Critical Oil Saturation (O/G System) Array Size Mismatch "
                               "in Three-Point Scaling Option")
    return ThreePointScaling(sgcr, sdisp, sgu, invalid, device)


def _three_point_kr_ow(grid, invalid, device):
    sowcr, = _required(grid, "Missing or Mismatching Critical Oil Saturation in Oil/Water System",
                       "SOWCR")
    conn_w, = _required(grid, "Missing or Mismatching Connate Water Saturation in Oil/Water System",
                        "SWL")
    swcr, = _required(grid, "Missing or Mismatching Scaled Critical Water Saturation in Oil/Water System",
                      "SWCR")
    smax = torch.ones_like(sowcr) - conn_w
    sdisp = torch.ones_like(sowcr) - swcr

    sgl = _cell_data(grid, "SGL")
    if sgl.numel() == sowcr.numel():
        sdisp = sdisp - sgl
        smax = smax - sgl
    elif sgl.numel() != 0:
        raise ValueError("Mismatching Connate Gas Saturation in Oil/Water System")

    return ThreePointScaling(sowcr, sdisp, smax, invalid, device)


def _three_point_kr_og(grid, invalid, device):
    sogcr, = _required(grid, "Missing or Mismatching Critical Oil Saturation in Oil/Gas System",
                       "SOGCR")
    conn_g, = _required(grid, "Missing or Mismatching Connate Gas Saturation in Oil/Gas System",
                        "SGL")
    sgcr, = _required(grid, "Missing or Mismatching Scaled Critical Gas Saturation in Oil/Gas System",
                      "SGCR")
    smax = torch.ones_like(sogcr) - conn_g
    sdisp = torch.ones_like(sogcr) - sgcr

    swl = _cell_data(grid, "SWL")
    if swl.numel() == sogcr.numel():
        sdisp = sdisp - swl
        smax = smax - swl
    elif swl.numel() != 0:
        raise ValueError("Mismatching Scaled Connate Water Saturation in Oil/Gas System")

    return ThreePointScaling(sogcr, sdisp, smax, invalid, device)


_THREE_POINT = {
    (SSys.OilWater, Ph.Aqua): _three_point_kr_w,
    (SSys.OilWater, Ph.Liquid): _three_point_kr_ow,
    (SSys.OilWater, Ph.Vapour):
        "Cannot Create a Three-Point EPS for Gas Relperm in an Oil/Water System",
    (SSys.OilGas, Ph.Aqua):
        "Cannot Create a Three-Point EPS for Water Relperm in an Oil/Gas System",
    (SSys.OilGas, Ph.Liquid): _three_point_kr_og,
    (SSys.OilGas, Ph.Vapour): _three_point_kr_g,
}


def _dispatch(table: dict, key, opt: EPSOptions):
    entry = table.get(key)
    if entry is None:
        raise ValueError(f"Invalid EPS configuration {_describe(opt)}")
    if isinstance(entry, str):
        raise ValueError(entry)
    return entry


def _use_three_point(opt: EPSOptions) -> bool:
    return opt.curve == FCat.Relperm and opt.use_3pt


def horizontal_from_grid(grid: GridProperties,
                         opt: EPSOptions,
                         invalid=InvalidEndpointBehaviour.UseUnscaled,
                         device=None,
                         verbose: bool = False) -> HorizontalScaling:
    """
    Горизонтальный закон масштабирования для заданной кривой.

    Pc и Kr без опции трёх точек масштабируются по двум точкам,
    Kr с опцией трёх точек по трём.
    """
    if device is None:
        device = grid.device
    if _use_three_point(opt):
        build = _dispatch(_THREE_POINT, (opt.subsys, opt.this_phase), opt)
    else:
        build = _dispatch(_TWO_POINT, opt.key, opt)

    eps = build(grid, invalid, device)
    if verbose:
        kind = "трёхточечное" if isinstance(eps, ThreePointScaling) else "двухточечное"
        print(f"Горизонтальное масштабирование {_describe(opt)}: {kind}")
        print(f"  Активных ячеек: {eps.num_cells}")
        print(f"  Некорректные концевые точки: {eps.invalid.value}")
    return eps


# ---------------------------------------------------------------------
# Немасштабированные концевые точки таблиц
# ---------------------------------------------------------------------

def _sdisp(s1: Sequence[float], s2: Sequence[float]) -> List[float]:
    return [1.0 - (a + b) for a, b in zip(s1, s2)]


_UNSCALED_TWO_POINT = {
    # Pc: левый узел - связанная насыщенность, правый - максимальная
    (FCat.CapPress, Ph.Aqua): lambda ep: unscaled_two_point(ep.conn.water, ep.smax.water),
    (FCat.CapPress, Ph.Vapour): lambda ep: unscaled_two_point(ep.conn.gas, ep.smax.gas),
    (FCat.CapPress, Ph.Liquid): "No Capillary Pressure Function for Oil",
}

_UNSCALED_TWO_POINT_KR = {
    # Kr: левый узел - критическая насыщенность, правый - максимальная
    (SSys.OilGas, Ph.Aqua):
        "Void Request for Unscaled Water Saturation End-Points in Oil-Gas System",
    (SSys.OilGas, Ph.Liquid): lambda ep: unscaled_two_point(ep.crit.oil_in_gas, ep.smax.oil),
    (SSys.OilGas, Ph.Vapour): lambda ep: unscaled_two_point(ep.crit.gas, ep.smax.gas),
    (SSys.OilWater, Ph.Aqua): lambda ep: unscaled_two_point(ep.crit.water, ep.smax.water),
    (SSys.OilWater, Ph.Liquid): lambda ep: unscaled_two_point(ep.crit.oil_in_water, ep.smax.oil),
    (SSys.OilWater, Ph.Vapour):
        "Void Request for Unscaled Gas Saturation End-Points in Oil-Water System",
}

_UNSCALED_THREE_POINT = {
    (SSys.OilGas, Ph.Aqua):
        "Void Request for Unscaled Water Saturation End-Points in Oil-Gas System",
    (SSys.OilGas, Ph.Liquid): lambda ep: unscaled_three_point(
        ep.crit.oil_in_gas, _sdisp(ep.crit.gas, ep.conn.water), ep.smax.oil),
    (SSys.OilGas, Ph.Vapour): lambda ep: unscaled_three_point(
        ep.crit.gas, _sdisp(ep.crit.oil_in_gas, ep.conn.water), ep.smax.gas),
    (SSys.OilWater, Ph.Aqua): lambda ep: unscaled_three_point(
        ep.crit.water, _sdisp(ep.crit.oil_in_water, ep.conn.gas), ep.smax.water),
    (SSys.OilWater, Ph.Liquid): lambda ep: unscaled_three_point(
        ep.crit.oil_in_water, _sdisp(ep.crit.water, ep.conn.gas), ep.smax.oil),
    (SSys.OilWater, Ph.Vapour):
        "Void Request for Unscaled Gas Saturation End-Points in Oil-Water System",
}


def unscaled_end_points(ep: RawTableEndPoints, opt: EPSOptions) -> List[TableEndPoints]:
    """Немасштабированные концевые точки (по одной на регион насыщенности)."""
    if opt.curve == FCat.CapPress:
        build = _dispatch(_UNSCALED_TWO_POINT, (opt.curve, opt.this_phase), opt)
    elif opt.use_3pt:
        build = _dispatch(_UNSCALED_THREE_POINT, (opt.subsys, opt.this_phase), opt)
    else:
        build = _dispatch(_UNSCALED_TWO_POINT_KR, (opt.subsys, opt.this_phase), opt)
    return build(ep)


# ---------------------------------------------------------------------
# Вертикальное масштабирование
# ---------------------------------------------------------------------

# Ключевые слова kr в точке критической насыщенности (любое включает режим)
_CRIT_SAT_KR_KEYWORDS = {
    (SSys.OilWater, Ph.Aqua): ("KRWR",),
    (SSys.OilGas, Ph.Aqua): ("KRWR",),
    (SSys.OilWater, Ph.Liquid): ("KRORW", "KROWR"),
    (SSys.OilGas, Ph.Liquid): ("KRORG", "KROGR"),
    (SSys.OilWater, Ph.Vapour): ("KRGR",),
    (SSys.OilGas, Ph.Vapour): ("KRGR",),
}


def have_scaled_relperm_at_crit_sat(grid: GridProperties, phase: Ph, subsys: SSys) -> bool:
    return any(grid.have_keyword_data(kw, g)
               for kw in _CRIT_SAT_KR_KEYWORDS[(subsys, phase)]
               for g in grid.active_grids)


def _use_crit_sat_vertical(grid: GridProperties, opt: EPSOptions) -> bool:
    return opt.curve == FCat.Relperm and \
        have_scaled_relperm_at_crit_sat(grid, opt.this_phase, opt.subsys)


def _pure_vertical_kr(keyword):
    def build(grid, dflt, device):
        fmax = grid_defaulted_vector(grid, keyword, dflt)
        return PureVerticalScaling(fmax, device)
    return build


def _pure_vertical_pc(keyword):
    def build(grid, dflt, device):
        pscale = create_unit_system(grid.unit_code).pressure()
        fmax = grid_defaulted_vector(grid, keyword, dflt,
                                     lambda pc: convert_from(pc, pscale))
        return PureVerticalScaling(fmax, device)
    return build


_PURE_VERTICAL = {
    (FCat.Relperm, SSys.OilGas, Ph.Aqua):
        "Cannot Create Vertical Scaling for Water Relperm in an Oil/Gas System",
    (FCat.Relperm, SSys.OilGas, Ph.Liquid): _pure_vertical_kr("KRO"),
    (FCat.Relperm, SSys.OilGas, Ph.Vapour): _pure_vertical_kr("KRG"),
    (FCat.Relperm, SSys.OilWater, Ph.Aqua): _pure_vertical_kr("KRW"),
    (FCat.Relperm, SSys.OilWater, Ph.Liquid): _pure_vertical_kr("KRO"),
    (FCat.Relperm, SSys.OilWater, Ph.Vapour):
        "Cannot Create Vertical Scaling for Gas Relperm in an Oil/Water System",
    (FCat.CapPress, SSys.OilWater, Ph.Aqua): _pure_vertical_pc("PCW"),
    (FCat.CapPress, SSys.OilGas, Ph.Aqua): _pure_vertical_pc("PCW"),
    (FCat.CapPress, SSys.OilWater, Ph.Vapour): _pure_vertical_pc("PCG"),
    (FCat.CapPress, SSys.OilGas, Ph.Vapour): _pure_vertical_pc("PCG"),
    (FCat.CapPress, SSys.OilWater, Ph.Liquid):
        "Creating Capillary Pressure Vertical Scaling as a Function of Oil Saturation is not Supported",
    (FCat.CapPress, SSys.OilGas, Ph.Liquid):
        "Creating Capillary Pressure Vertical Scaling as a Function of Oil Saturation is not Supported",
}


def _one_minus_sum(grid, terms) -> torch.Tensor:
    """1 - сумма поячеечных насыщенностей с умолчаниями по регионам."""
    sdisp = torch.ones(grid.num_cells(), dtype=torch.float64, device=grid.device)
    for kw, dflt in terms:
        sdisp = sdisp - grid_defaulted_vector(grid, kw, dflt)
    return sdisp


def _crit_sat_vertical(sdisp_terms: Callable, fdisp_kw: str, fmax_kw: str):
    def build(grid, tep, fvals, device):
        sdisp = _one_minus_sum(grid, sdisp_terms(grid, tep))
        fdisp = grid_defaulted_vector(grid, fdisp_kw, [fv.disp.val for fv in fvals])
        fmax = grid_defaulted_vector(grid, fmax_kw, [fv.max.val for fv in fvals])
        return CritSatVerticalScaling(sdisp, fdisp, fmax, device)
    return build


def _gas_sdisp_terms(grid, tep):
    if grid.oil_active:
        return [("SOGCR", tep.crit.oil_in_gas), ("SWL", tep.conn.water)]
    # нефть неактивна (газ/вода)
    return [("SWCR", tep.crit.water)]


def _water_sdisp_terms(grid, tep):
    if grid.oil_active:
        return [("SOWCR", tep.crit.oil_in_water), ("SGL", tep.conn.gas)]
    return [("SGCR", tep.crit.gas)]


_CRIT_SAT_VERTICAL = {
    (SSys.OilWater, Ph.Aqua): _crit_sat_vertical(_water_sdisp_terms, "KRWR", "KRW"),
    (SSys.OilWater, Ph.Liquid): _crit_sat_vertical(
        lambda grid, tep: [("SWCR", tep.crit.water), ("SGL", tep.conn.gas)], "KRORW", "KRO"),
    (SSys.OilWater, Ph.Vapour):
        "Cannot Create Critical Saturation Vertical Scaling for Gas Relperm in an Oil/Water System",
    (SSys.OilGas, Ph.Aqua):
        "Cannot Create Critical Saturation Vertical Scaling for Water Relperm in an Oil/Gas System",
    (SSys.OilGas, Ph.Liquid): _crit_sat_vertical(
        lambda grid, tep: [("SGCR", tep.crit.gas), ("SWL", tep.conn.water)], "KRORG", "KRO"),
    (SSys.OilGas, Ph.Vapour): _crit_sat_vertical(_gas_sdisp_terms, "KRGR", "KRG"),
}


def vertical_from_grid(grid: GridProperties,
                       opt: EPSOptions,
                       tep: RawTableEndPoints,
                       fvals: Sequence[FunctionValues],
                       device=None,
                       verbose: bool = False) -> VerticalScaling:
    """
    Вертикальный закон масштабирования.

    Если для Kr задано значение в критической точке (KRWR, KRGR,
    KRORW/KROWR, KRORG/KROGR), строится масштабирование с учётом
    критической насыщенности, иначе чисто пропорциональное.
    """
    if device is None:
        device = grid.device
    if _use_crit_sat_vertical(grid, opt):
        build = _dispatch(_CRIT_SAT_VERTICAL, (opt.subsys, opt.this_phase), opt)
        scaling = build(grid, tep, fvals, device)
    else:
        build = _dispatch(_PURE_VERTICAL, opt.key, opt)
        scaling = build(grid, [fv.max.val for fv in fvals], device)

    if verbose:
        kind = "критическая насыщенность" if isinstance(scaling, CritSatVerticalScaling) \
            else "пропорциональное"
        print(f"Вертикальное масштабирование {_describe(opt)}: {kind}")
        print(f"  Активных ячеек: {scaling.num_cells}, регионов: {len(fvals)}")
    return scaling


def unscaled_function_values(grid: GridProperties,
                             ep: RawTableEndPoints,
                             opt: EPSOptions,
                             eval_sf: Callable[[int, float], float]) -> List[FunctionValues]:
    """
    Значения табличной функции в узлах вытеснения и максимума по регионам.

    ``eval_sf(region, sat)`` - внешний вычислитель табличной функции.
    """
    ret: List[FunctionValues] = []

    if opt.curve == FCat.CapPress or not _use_crit_sat_vertical(grid, opt):
        uep = unscaled_end_points(ep, replace(opt, use_3pt=False))
        for i, pt in enumerate(uep):
            ret.append(FunctionValues(
                max=FunctionValue(sat=pt.high, val=float(eval_sf(i, pt.high))),
            ))
    else:
        uep = unscaled_end_points(ep, replace(opt, use_3pt=True))
        for i, pt in enumerate(uep):
            ret.append(FunctionValues(
                disp=FunctionValue(sat=pt.disp, val=float(eval_sf(i, pt.disp))),
                max=FunctionValue(sat=pt.high, val=float(eval_sf(i, pt.high))),
            ))

    return ret

# Масштабирование концевых точек (EPS) функций насыщенности
from .endpoints import (
    EPSOptions,
    FunctionCategory,
    FunctionValue,
    FunctionValues,
    InvalidEndpointBehaviour,
    PhaseIndex,
    RawTableEndPoints,
    SaturationPoint,
    SaturationPoints,
    SubSystem,
    TableEndPoints,
)
from .horizontal import ThreePointScaling, TwoPointScaling
from .vertical import CritSatVerticalScaling, PureVerticalScaling
from .grid import GridProperties, grid_defaulted_vector
from .create import (
    horizontal_from_grid,
    unscaled_end_points,
    unscaled_function_values,
    vertical_from_grid,
)

__all__ = [
    "EPSOptions", "FunctionCategory", "FunctionValue", "FunctionValues",
    "InvalidEndpointBehaviour", "PhaseIndex", "RawTableEndPoints",
    "SaturationPoint", "SaturationPoints", "SubSystem", "TableEndPoints",
    "TwoPointScaling", "ThreePointScaling",
    "PureVerticalScaling", "CritSatVerticalScaling",
    "GridProperties", "grid_defaulted_vector",
    "horizontal_from_grid", "unscaled_end_points",
    "unscaled_function_values", "vertical_from_grid",
]

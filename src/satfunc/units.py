# Перевод давления из единиц ECL результатов в Паскали

BAR = 1.0e5
PSI = 6894.75729
ATM = 101325.0

UNIT_METRIC = 1
UNIT_FIELD = 2
UNIT_LAB = 3
UNIT_PVT_M = 4


class UnitSystem:
    def __init__(self, name: str, pressure_scale: float):
        self.name = name
        self._pressure = pressure_scale

    def pressure(self) -> float:
        """Множитель перевода единицы давления в Па."""
        return self._pressure

    def __repr__(self):
        return f"UnitSystem(name={self.name}, pressure={self._pressure})"


_UNIT_SYSTEMS = {
    UNIT_METRIC: ('METRIC', BAR),
    UNIT_FIELD: ('FIELD', PSI),
    UNIT_LAB: ('LAB', ATM),
    UNIT_PVT_M: ('PVT-M', ATM),
}


def create_unit_system(code: int) -> UnitSystem:
    try:
        name, scale = _UNIT_SYSTEMS[int(code)]
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"Неизвестный код системы единиц: {code}") from None
    return UnitSystem(name, scale)


def convert_from(value, scale: float):
    """Значение в единицах файла -> значение в СИ."""
    return value * scale

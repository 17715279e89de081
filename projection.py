import math

from config import InvalidParameterError


def expected_value(
    start: float, annual_savings: float, years: int, growth_rate: float
) -> float:
    """
    Account value after ``years`` of constant growth, with no randomness.

    The starting balance compounds for every year; the saving made in year i
    compounds for i years, so the last saving earns nothing.
    """
    if years < 0:
        raise InvalidParameterError(f"Number of years must be non-negative, got {years}")
    for name, value in (("start", start), ("annual_savings", annual_savings), ("growth_rate", growth_rate)):
        if not math.isfinite(value):
            raise InvalidParameterError(f"{name} must be finite, got {value}")

    account_value = start * (1 + growth_rate) ** years
    for i in range(years):
        account_value += annual_savings * (1 + growth_rate) ** i
    return account_value

"""
capacity_expansion/model/economics.py

Discounting utilities for the multi-year objective. Investment costs are paid once in their
commission year and corrected by the salvage value of the lifetime left after the end of the
horizon; operational costs are paid every year and represented by the milestone years.

Main functions:

- crf(lifetime, i_eff=const.DISCOUNT_RATE) -> float
    Capital recovery factor. Handles i_eff == 0 as a special case and raises for negative rates.

- annualized_cost_factor(lifetime, i_eff) -> float
    Annuity of one unit of investment paid at the beginning of each year, r / ((1+r)(1-(1+r)^-L)).

- salvage_value_fraction(year, end_of_horizon, lifetime, i_eff) -> float
    Share of an investment made in `year` that is still worth something after the end of the
    horizon: the discounted annuities of the years end_of_horizon+1 .. year+lifetime-1.

- discount_factor(year, discount_year, discount_rate=None) -> float
    1 / (1 + r)^(year - discount_year) with the social discount rate.

- investment_discount_weight(year, discount_year, end_of_horizon, lifetime, i_eff, discount_rate=None) -> float
    Weight of an investment cost in the objective.

- operation_discount_weight(year, discount_year, discount_rate=None) -> float
    Weight of an operational cost of a milestone year in the objective.

- milestone_intervals(milestone_years) -> dict
    Number of years each milestone year stands for (distance to the next milestone, 1 for the last).

Behaviour and notes:

- Functions are pure and use `capacity_expansion.const.DISCOUNT_RATE` when the social discount
  rate is not given.
- Lifetimes are in years and must be positive.

Example:

    w = investment_discount_weight(2030, discount_year=2030, end_of_horizon=2050, lifetime=30, i_eff=0.05)
"""

from capacity_expansion import const


def crf(lifetime: int, i_eff=const.DISCOUNT_RATE) -> float:
    """calculate the capital recovery factor (CRF)"""

    assert lifetime > 0, "lifetime must be > 0 years"

    if i_eff > 0:
        return (i_eff * (1+i_eff) ** lifetime) / ((1 + i_eff) ** lifetime - 1)
    elif i_eff == 0:
        return 1/lifetime
    else:
        raise ValueError("i_eff must be >= 0")


def annualized_cost_factor(lifetime: int, i_eff: float) -> float:
    """annuity paid at the beginning of each year, i.e. the CRF discounted by one year"""
    return crf(lifetime, i_eff) / (1 + i_eff)


def salvage_value_fraction(year: int, end_of_horizon: int, lifetime: int, i_eff: float) -> float:
    """
    Fraction of an investment in `year` that is recovered because the asset outlives the horizon.

    :param year: Commission year of the investment.
    :param end_of_horizon: Last milestone year.
    :param lifetime: Economic lifetime in years.
    :param i_eff: Technology specific discount rate.
    :return: Value between 0 (no lifetime left after the horizon) and 1.
    :rtype: float
    """
    remaining_years = range(end_of_horizon + 1, year + lifetime)
    if len(remaining_years) == 0:
        return 0.0
    annuity = annualized_cost_factor(lifetime, i_eff)
    return annuity * sum(1 / (1 + i_eff) ** (k - year) for k in remaining_years)


def discount_factor(year: int, discount_year: int, discount_rate: float = None) -> float:
    if discount_rate is None:
        discount_rate = const.DISCOUNT_RATE
    if discount_rate < 0:
        raise ValueError("discount_rate must be >= 0")
    return 1 / (1 + discount_rate) ** (year - discount_year)


def investment_discount_weight(year: int, discount_year: int, end_of_horizon: int, lifetime: int, i_eff: float,
                               discount_rate: float = None) -> float:
    """discounted investment weight net of the salvage value"""
    return (discount_factor(year, discount_year, discount_rate)
            * (1 - salvage_value_fraction(year, end_of_horizon, lifetime, i_eff)))


def operation_discount_weight(year: int, discount_year: int, discount_rate: float = None) -> float:
    return discount_factor(year, discount_year, discount_rate)


def milestone_intervals(milestone_years: list[int]) -> dict:
    """{milestone year: years until the next milestone}, the last milestone year counts once"""
    milestone_years = sorted(milestone_years)
    intervals = {y: y_next - y for y, y_next in zip(milestone_years[:-1], milestone_years[1:])}
    if milestone_years:
        intervals[milestone_years[-1]] = 1
    return intervals

"""
capacity_expansion/model/expressions.py

Expression rules of the Pyomo model: multi-year accumulation of installed units, storage energy
capacity and profile aggregations that are shared by several constraints.

The rules expect the model to carry the frozen graph (`m.graph`), the index sets (`m.sets`) and
the index table rows (`m.rows`), see `capacity_expansion.model.pyomo_model.init_pyomo_model`.

Accumulation of units of an asset at milestone year y:

- simple:  initial units + investments - decommissions of the milestone years in the lifetime
           window [y - technical_lifetime + 1, y]
- compact: sum over the vintages v in the lifetime window of
           initial units of v + investment in v - decommissions of v after v
- none:    initial units

Transport flows accumulate export and import units separately with the simple method.
"""

import numpy as np

from capacity_expansion.const import InvestmentMethod, IndexTable, ProfileType
from capacity_expansion.helper import profile_aggregation


def flow_sum(m, terms: dict):
    """linear expression sum(coefficient * flow) of a terms dictionary"""
    return sum(coefficient * m.flow[index] for index, coefficient in terms.items())


def lifetime_window(m, element, y: int) -> list[int]:
    """milestone years whose investments are still within their technical lifetime at year y"""
    start = element.starting_year(y)
    return [yy for yy in m.sets.Y if start <= yy <= y]


def asset_profile(m, a: str, y: int, profile_type: ProfileType, rp: int, block: tuple[int, int],
                  default: float, agg=np.mean, commission_year: int = None) -> float:
    """aggregated profile of an asset over a block, of the vintage `commission_year` (default: y)"""
    return profile_aggregation(agg, m.graph.asset(a).profiles_at(y, commission_year), (profile_type.value, rp),
                               block, default)


def flow_profile(m, flow_key: tuple[str, str], y: int, profile_type: ProfileType, rp: int, block: tuple[int, int],
                 default: float, agg=np.mean) -> float:
    return profile_aggregation(agg, m.graph.flow(*flow_key).profiles_at(y), (profile_type.value, rp), block, default)


def asset_timeframe_profile(m, a: str, y: int, profile_type: ProfileType, block: tuple[int, int], default: float,
                            agg=np.mean) -> float:
    return profile_aggregation(agg, m.graph.asset(a).timeframe_profiles_at(y), profile_type.value, block, default)


def accumulated_initial_units_rule(m, a, y):
    return m.graph.asset(a).initial_units_at(y)


def accumulated_units_compact_rule(m, a, y, v):
    """units of vintage v that are still installed at year y"""
    asset = m.graph.asset(a)
    units = asset.initial_units.get(y, {}).get(v) or 0.0
    if a in m.sets.Ai.get(v, ()):
        units += m.assets_investment[v, a]
    units -= sum(m.assets_decommission_compact[a, yy, v] for yy in m.sets.Y
                 if v < yy <= y and (a, yy, v) in m.decommission_compact_index)
    return units


def accumulated_units_rule(m, a, y):
    asset = m.graph.asset(a)

    if asset.investment_method == InvestmentMethod.Simple:
        window = lifetime_window(m, asset, y)
        investments = sum(m.assets_investment[yy, a] for yy in window if a in m.sets.Ai[yy])
        decommissions = sum(m.assets_decommission_simple[a, yy] for yy in window
                            if (a, yy) in m.decommission_simple_index)
        return asset.initial_units_at(y) + investments - decommissions

    if asset.investment_method == InvestmentMethod.Compact:
        return sum(m.accumulated_units_compact[a, y, v] for v in m.sets.V_all
                   if (a, y, v) in m.accumulated_compact_index)

    return asset.initial_units_at(y)


def accumulated_investment_units_rule(m, a, y):
    return m.accumulated_units[a, y] - m.accumulated_initial_units[a, y]


def _accumulated_flow_units(m, u, v, y, initial_units: float):
    flow = m.graph.flow(u, v)
    window = lifetime_window(m, flow, y)
    investments = sum(m.flows_investment[yy, u, v] for yy in window if (u, v) in m.sets.Fi[yy])
    decommissions = sum(m.flows_decommission[yy, u, v] for yy in window if (yy, u, v) in m.flows_decommission_index)
    return initial_units + investments - decommissions


def accumulated_flows_export_units_rule(m, y, u, v):
    return _accumulated_flow_units(m, u, v, y, m.graph.flow(u, v).initial_export_units_at(y))


def accumulated_flows_import_units_rule(m, y, u, v):
    return _accumulated_flow_units(m, u, v, y, m.graph.flow(u, v).initial_import_units_at(y))


def accumulated_energy_capacity_rule(m, y, a):
    """
    Energy capacity of a storage asset: invested separately with the energy method, otherwise
    tied to the power capacity by the energy to power ratio.
    """
    asset = m.graph.asset(a)
    if asset.storage_method_energy:
        investments = sum(m.assets_investment_energy[yy, a] for yy in lifetime_window(m, asset, y)
                          if (yy, a) in m.assets_investment_energy_index)
        return asset.capacity_storage_energy * (asset.initial_storage_units_at(y) + investments)
    return asset.energy_to_power_ratio * asset.capacity * m.accumulated_units[a, y]


def assets_profile_times_capacity_out_rule(m, i):
    """
    Available output capacity of a highest_out row. Compact method assets sum their vintages,
    each with the availability profile of its commission year.
    """
    row = m.rows[IndexTable.HighestOut][i]
    a, y, rp = row['asset'], row['year'], row['rep_period']
    block = (row['time_block_start'], row['time_block_end'])
    capacity = m.graph.asset(a).capacity

    if a in m.sets.A_compact:
        return capacity * sum(
            asset_profile(m, a, y, ProfileType.Availability, rp, block, 1.0, commission_year=v)
            * m.accumulated_units_compact[a, y, v]
            for v in m.sets.V_all if (a, y, v) in m.accumulated_compact_index)

    availability = asset_profile(m, a, y, ProfileType.Availability, rp, block, 1.0)
    return availability * capacity * m.accumulated_units[a, y]

"""
capacity_expansion/model/pyomo_model.py

Constructs the Pyomo ConcreteModel of the multi-year capacity expansion problem.
This module provides the constraint rule functions and the initializer that assembles sets,
variables, expressions, constraints and the objective from the aligned index tables.

Main callables:

- init_pyomo_model(graph, representative_periods, timeframe, groups, years, dataframes, sets,
                   model_parameters) -> ConcreteModel
    Build and return the model. Creates Sets (rows of every index table, investment and
    decommission indices), Vars (flows, investments, decommissions, storage levels, units on,
    charging indicators), Expressions (accumulated units, energy capacity, costs), Constraints
    implemented by rule functions and an Objective (minimise discounted system costs).

- write_lp_file(m, fpath)
    Write the model in LP format with readable names.

Key behaviours and expectations:

- One variable per row of its index table; row i of `dataframes[IndexTable.Flows]` is `m.flow[i]`.
- Flow terms of a constraint row are taken from the 'incoming_terms' / 'outgoing_terms' columns
  of the index tables (see `capacity_expansion.data_preparation.time_resolution`).
- Rows without any flow term are skipped (Constraint.Skip).
- The initializer attaches the graph, index sets, index table rows and lookups to the model
  instance so that the rule functions can reach them.

Dependencies:

- pyomo.environ (ConcreteModel, Set, Var, Expression, Constraint, Objective, ...)
- numpy (profile aggregation)
- project modules: `capacity_expansion.model.expressions`, `capacity_expansion.model.economics`
"""

import math
import logging

import numpy as np
from pyomo.environ import ConcreteModel, Set, Var, Expression, Constraint, Objective, minimize, \
    Reals, NonNegativeReals, NonNegativeIntegers, Binary, UnitInterval

from capacity_expansion.const import AssetType, IndexTable, ProfileType, BinaryStorageMethod
from capacity_expansion.data_preparation.data_formats import ModelParameters
from capacity_expansion.model.economics import investment_discount_weight, operation_discount_weight, \
    milestone_intervals
from capacity_expansion.model.expressions import *
from capacity_expansion.model.index_sets import IndexSets

logger = logging.getLogger(__name__)


def _block(row: dict) -> tuple[int, int]:
    return row['time_block_start'], row['time_block_end']


def _periods_block(row: dict) -> tuple[int, int]:
    return row['periods_block_start'], row['periods_block_end']


def _group_rows(rows: list[dict], key_columns: list[str]) -> dict:
    """{group key: [row index, ...]} in row order"""
    groups = {}
    for row in rows:
        groups.setdefault(tuple(row[c] for c in key_columns), []).append(row['index'])
    return groups


def _previous_rows(groups: dict) -> dict:
    """{row index: index of the previous row in its group, None for the first row}"""
    previous = {}
    for indices in groups.values():
        for k, i in enumerate(indices):
            previous[i] = indices[k - 1] if k > 0 else None
    return previous


def _containing_rows(fine_rows: list[dict], coarse_rows: list[dict]) -> dict:
    """{fine row index: index of the coarse row of the same asset, year and rep_period containing its start}"""
    key_columns = ['asset', 'year', 'rep_period']
    coarse = _group_rows(coarse_rows, key_columns)
    containing = {}
    for key, fine_indices in _group_rows(fine_rows, key_columns).items():
        candidates = coarse.get(key, [])
        j = 0
        for i in fine_indices:
            start = fine_rows[i]['time_block_start']
            while j < len(candidates) and coarse_rows[candidates[j]]['time_block_end'] < start:
                j += 1
            if j < len(candidates):
                containing[i] = candidates[j]
    return containing


def _investment_upper_bound(capacity: float, limit, integer: bool):
    """limit / capacity, rounded down for integer investments; None (unbounded) without limit"""
    if capacity <= 0 or limit is None:
        return None
    bound = limit / capacity
    return math.floor(bound) if integer else bound


# DOMAINS AND BOUNDS

def flow_domain_rule(m, i):
    """non-negative out of producers, conversion and storage assets and into conversion and storage assets"""
    row = m.rows[IndexTable.Flows][i]
    sets = m.sets
    if row['from_asset'] in sets.Ap + sets.Acv + sets.As or row['to_asset'] in sets.Acv + sets.As:
        return NonNegativeReals
    return Reals


def assets_investment_domain_rule(m, y, a):
    return NonNegativeIntegers if m.graph.asset(a).investment_integer else NonNegativeReals


def assets_investment_bounds_rule(m, y, a):
    asset = m.graph.asset(a)
    return 0, _investment_upper_bound(asset.capacity, asset.investment_limit.get(y), asset.investment_integer)


def assets_investment_energy_domain_rule(m, y, a):
    return NonNegativeIntegers if m.graph.asset(a).investment_integer_storage_energy else NonNegativeReals


def assets_investment_energy_bounds_rule(m, y, a):
    asset = m.graph.asset(a)
    return 0, _investment_upper_bound(asset.capacity_storage_energy, asset.investment_limit_storage_energy.get(y),
                                      asset.investment_integer_storage_energy)


def flows_investment_domain_rule(m, y, u, v):
    return NonNegativeIntegers if m.graph.flow(u, v).investment_integer else NonNegativeReals


def flows_investment_bounds_rule(m, y, u, v):
    flow = m.graph.flow(u, v)
    return 0, _investment_upper_bound(flow.capacity, flow.investment_limit.get(y), flow.investment_integer)


def units_on_domain_rule(m, i):
    a = m.rows[IndexTable.UnitsOn][i]['asset']
    return NonNegativeIntegers if m.graph.asset(a).unit_commitment_integer else NonNegativeReals


def is_charging_domain_rule(m, i):
    a = m.rows[IndexTable.IsCharging][i]['asset']
    return Binary if m.graph.asset(a).use_binary_storage_method == BinaryStorageMethod.Binary else UnitInterval


# CAPACITY

def _availability(m, row):
    return asset_profile(m, row['asset'], row['year'], ProfileType.Availability, row['rep_period'], _block(row), 1.0)


def _binary_part1_capacity(m, asset, y):
    """
    Capacity of the first binary storage piece: initial capacity plus the investment limit of
    investable storage. None if the storage can invest without limit.
    """
    initial_capacity = asset.capacity * asset.initial_units_at(y)
    if asset.name not in m.sets.Ai[y]:
        return initial_capacity
    limit = asset.investment_limit.get(y)
    if limit is None:
        return None
    return initial_capacity + limit


def max_output_flows_limit_rule(m, i):
    row = m.rows[IndexTable.HighestOut][i]
    if not row['outgoing_terms']:
        return Constraint.Skip
    return flow_sum(m, row['outgoing_terms']) <= m.assets_profile_times_capacity_out[i]


def max_output_flows_limit_with_binary_part1_rule(m, i):
    row = m.rows[IndexTable.HighestOut][i]
    a, y = row['asset'], row['year']
    if not row['outgoing_terms'] or a not in m.sets.Asb[y]:
        return Constraint.Skip
    capacity = _binary_part1_capacity(m, m.graph.asset(a), y)
    if capacity is None:
        return Constraint.Skip
    k = m.is_charging_row_of_highest_out[i]
    return flow_sum(m, row['outgoing_terms']) <= _availability(m, row) * capacity * (1 - m.is_charging[k])


def max_output_flows_limit_with_binary_part2_rule(m, i):
    """discharging of invested units is not restricted by the charging indicator"""
    row = m.rows[IndexTable.HighestOut][i]
    a, y = row['asset'], row['year']
    if not row['outgoing_terms'] or a not in m.sets.Asb[y] or a not in m.sets.Ai[y]:
        return Constraint.Skip
    asset = m.graph.asset(a)
    k = m.is_charging_row_of_highest_out[i]
    return flow_sum(m, row['outgoing_terms']) <= _availability(m, row) * asset.capacity * (
        asset.initial_units_at(y) * (1 - m.is_charging[k]) + m.accumulated_investment_units[a, y])


def max_input_flows_limit_rule(m, i):
    row = m.rows[IndexTable.HighestIn][i]
    if not row['incoming_terms']:
        return Constraint.Skip
    a, y = row['asset'], row['year']
    return flow_sum(m, row['incoming_terms']) <= \
        _availability(m, row) * m.graph.asset(a).capacity * m.accumulated_units[a, y]


def max_input_flows_limit_with_binary_part1_rule(m, i):
    row = m.rows[IndexTable.HighestIn][i]
    a, y = row['asset'], row['year']
    if not row['incoming_terms'] or a not in m.sets.Asb[y]:
        return Constraint.Skip
    capacity = _binary_part1_capacity(m, m.graph.asset(a), y)
    if capacity is None:
        return Constraint.Skip
    k = m.is_charging_row_of_highest_in[i]
    return flow_sum(m, row['incoming_terms']) <= _availability(m, row) * capacity * m.is_charging[k]


def max_input_flows_limit_with_binary_part2_rule(m, i):
    row = m.rows[IndexTable.HighestIn][i]
    a, y = row['asset'], row['year']
    if not row['incoming_terms'] or a not in m.sets.Asb[y] or a not in m.sets.Ai[y]:
        return Constraint.Skip
    asset = m.graph.asset(a)
    k = m.is_charging_row_of_highest_in[i]
    return flow_sum(m, row['incoming_terms']) <= _availability(m, row) * asset.capacity * (
        asset.initial_units_at(y) * m.is_charging[k] + m.accumulated_investment_units[a, y])


# DECOMMISSIONING

def assets_decommission_simple_limit_rule(m, a, y):
    return m.accumulated_units[a, y] >= 0


def assets_decommission_compact_limit_rule(m, a, y, v):
    return m.accumulated_units_compact[a, y, v] >= 0


def flows_decommission_export_limit_rule(m, y, u, v):
    return m.accumulated_flows_export_units[y, u, v] >= 0


def flows_decommission_import_limit_rule(m, y, u, v):
    return m.accumulated_flows_import_units[y, u, v] >= 0


# ENERGY LIMITS OVER THE TIMEFRAME

def max_energy_inter_rp_rule(m, i):
    return flow_sum(m, m.rows[IndexTable.MaxEnergyInterRP][i]['outgoing_terms'])


def min_energy_inter_rp_rule(m, i):
    return flow_sum(m, m.rows[IndexTable.MinEnergyInterRP][i]['outgoing_terms'])


def max_energy_inter_rp_limit_rule(m, i):
    row = m.rows[IndexTable.MaxEnergyInterRP][i]
    if not row['outgoing_terms']:
        return Constraint.Skip
    a, y = row['asset'], row['year']
    profile = asset_timeframe_profile(m, a, y, ProfileType.MaxEnergy, _periods_block(row), 1.0, agg=np.sum)
    return m.max_energy_inter_rp[i] <= profile * m.graph.asset(a).max_energy_timeframe_partition[y]


def min_energy_inter_rp_limit_rule(m, i):
    row = m.rows[IndexTable.MinEnergyInterRP][i]
    if not row['outgoing_terms']:
        return Constraint.Skip
    a, y = row['asset'], row['year']
    profile = asset_timeframe_profile(m, a, y, ProfileType.MinEnergy, _periods_block(row), 1.0, agg=np.sum)
    return m.min_energy_inter_rp[i] >= profile * m.graph.asset(a).min_energy_timeframe_partition[y]


# BALANCES

def consumer_balance_rule(m, i):
    row = m.rows[IndexTable.HighestInOut][i]
    asset = m.graph.asset(row['asset'])
    if asset.type != AssetType.Consumer or not (row['incoming_terms'] or row['outgoing_terms']):
        return Constraint.Skip
    y = row['year']
    demand = asset_profile(m, asset.name, y, ProfileType.Demand, row['rep_period'], _block(row), 1.0) * \
        (asset.peak_demand.get(y) or 0.0)
    balance = flow_sum(m, row['incoming_terms']) - flow_sum(m, row['outgoing_terms']) - demand
    if asset.consumer_balance_sense == '>=':
        return balance >= 0
    return balance == 0


def hub_balance_rule(m, i):
    row = m.rows[IndexTable.HighestInOut][i]
    if m.graph.asset(row['asset']).type != AssetType.Hub or not (row['incoming_terms'] or row['outgoing_terms']):
        return Constraint.Skip
    return flow_sum(m, row['incoming_terms']) - flow_sum(m, row['outgoing_terms']) == 0


def conversion_balance_rule(m, i):
    """inflows are multiplied and outflows divided by their efficiencies in the flow terms"""
    row = m.rows[IndexTable.Lowest][i]
    if not (row['incoming_terms'] or row['outgoing_terms']):
        return Constraint.Skip
    return flow_sum(m, row['incoming_terms']) == flow_sum(m, row['outgoing_terms'])


# STORAGE

def storage_intra_rp_balance_rule(m, i):
    row = m.rows[IndexTable.StorageLevelIntraRP][i]
    a, y, rp = row['asset'], row['year'], row['rep_period']
    asset = m.graph.asset(a)

    previous = m.previous_row[IndexTable.StorageLevelIntraRP][i]
    if previous is not None:
        previous_level = m.storage_level_intra_rp[previous]
    elif asset.initial_storage_level.get(y) is not None:
        previous_level = asset.initial_storage_level[y]
    else:
        # cyclic: the first block starts from the level at the end of the representative period
        previous_level = m.storage_level_intra_rp[m.last_row_of_storage_intra_rp[(a, y, rp)]]

    inflows = asset_profile(m, a, y, ProfileType.Inflows, rp, _block(row), 0.0, agg=np.sum) * \
        (asset.storage_inflows.get(y) or 0.0)

    return m.storage_level_intra_rp[i] == (
        previous_level + inflows + flow_sum(m, row['incoming_terms']) - flow_sum(m, row['outgoing_terms']))


def max_storage_level_intra_rp_limit_rule(m, i):
    row = m.rows[IndexTable.StorageLevelIntraRP][i]
    a, y = row['asset'], row['year']
    profile = asset_profile(m, a, y, ProfileType.MaxStorageLevel, row['rep_period'], _block(row), 1.0)
    return m.storage_level_intra_rp[i] <= profile * m.accumulated_energy_capacity[y, a]


def min_storage_level_intra_rp_limit_rule(m, i):
    row = m.rows[IndexTable.StorageLevelIntraRP][i]
    a, y = row['asset'], row['year']
    profile = asset_profile(m, a, y, ProfileType.MinStorageLevel, row['rep_period'], _block(row), 0.0)
    return m.storage_level_intra_rp[i] >= profile * m.accumulated_energy_capacity[y, a]


def storage_intra_rp_final_level_rule(m, a, y, rp):
    return m.storage_level_intra_rp[m.last_row_of_storage_intra_rp[(a, y, rp)]] >= \
        m.graph.asset(a).initial_storage_level[y]


def _inter_rp_inflows(m, asset, y, rp_weights: dict) -> float:
    storage_inflows = asset.storage_inflows.get(y) or 0.0
    if storage_inflows == 0.0:
        return 0.0
    total = 0.0
    for rp, weight in rp_weights.items():
        block = (1, m.representative_periods[y][rp].num_timesteps)
        total += weight * asset_profile(m, asset.name, y, ProfileType.Inflows, rp, block, 0.0, agg=np.sum)
    return total * storage_inflows


def storage_inter_rp_balance_rule(m, i):
    row = m.rows[IndexTable.StorageLevelInterRP][i]
    a, y = row['asset'], row['year']
    asset = m.graph.asset(a)

    previous = m.previous_row[IndexTable.StorageLevelInterRP][i]
    if previous is not None:
        previous_level = m.storage_level_inter_rp[previous]
    elif asset.initial_storage_level.get(y) is not None:
        previous_level = asset.initial_storage_level[y]
    else:
        previous_level = m.storage_level_inter_rp[m.last_row_of_storage_inter_rp[(a, y)]]

    return m.storage_level_inter_rp[i] == (
        previous_level + _inter_rp_inflows(m, asset, y, row['rp_weights'])
        + flow_sum(m, row['incoming_terms']) - flow_sum(m, row['outgoing_terms']))


def max_storage_level_inter_rp_limit_rule(m, i):
    row = m.rows[IndexTable.StorageLevelInterRP][i]
    a, y = row['asset'], row['year']
    profile = asset_timeframe_profile(m, a, y, ProfileType.MaxStorageLevel, _periods_block(row), 1.0)
    return m.storage_level_inter_rp[i] <= profile * m.accumulated_energy_capacity[y, a]


def min_storage_level_inter_rp_limit_rule(m, i):
    row = m.rows[IndexTable.StorageLevelInterRP][i]
    a, y = row['asset'], row['year']
    profile = asset_timeframe_profile(m, a, y, ProfileType.MinStorageLevel, _periods_block(row), 0.0)
    return m.storage_level_inter_rp[i] >= profile * m.accumulated_energy_capacity[y, a]


def storage_inter_rp_final_level_rule(m, a, y):
    return m.storage_level_inter_rp[m.last_row_of_storage_inter_rp[(a, y)]] >= \
        m.graph.asset(a).initial_storage_level[y]


# TRANSPORT

def _transport_row(m, i):
    row = m.rows[IndexTable.Flows][i]
    flow = m.graph.flow(row['from_asset'], row['to_asset'])
    return row, flow


def _flow_availability(m, row):
    return flow_profile(m, (row['from_asset'], row['to_asset']), row['year'], ProfileType.Availability,
                        row['rep_period'], _block(row), 1.0)


def max_transport_flow_limit_rule(m, i):
    row, flow = _transport_row(m, i)
    if not flow.is_transport:
        return Constraint.Skip
    return m.flow[i] <= _flow_availability(m, row) * flow.capacity * \
        m.accumulated_flows_export_units[row['year'], flow.from_asset, flow.to_asset]


def min_transport_flow_limit_rule(m, i):
    row, flow = _transport_row(m, i)
    if not flow.is_transport:
        return Constraint.Skip
    return m.flow[i] >= -_flow_availability(m, row) * flow.capacity * \
        m.accumulated_flows_import_units[row['year'], flow.from_asset, flow.to_asset]


# GROUPS

def _group_investment(m, group):
    members = [a for a in m.sets.A if m.graph.asset(a).group == group.name
               and (group.year, a) in m.assets_investment_index]
    if not members:
        return None
    return sum(m.graph.asset(a).capacity * m.assets_investment[group.year, a] for a in members)


def group_max_investment_limit_rule(m, g):
    group = m.groups[g]
    if not group.invest_method or group.max_investment_limit is None:
        return Constraint.Skip
    investment = _group_investment(m, group)
    if investment is None:
        return Constraint.Skip
    return investment <= group.max_investment_limit


def group_min_investment_limit_rule(m, g):
    group = m.groups[g]
    if not group.invest_method or group.min_investment_limit is None:
        return Constraint.Skip
    investment = _group_investment(m, group)
    if investment is None:
        return Constraint.Skip
    return investment >= group.min_investment_limit


# UNIT COMMITMENT AND RAMPING

def limit_units_on_rule(m, i):
    row = m.rows[IndexTable.UnitsOn][i]
    return m.units_on[i] <= m.accumulated_units[row['asset'], row['year']]


def _flow_above_min_operating_point_uc(m, i):
    """outgoing flow above the minimum operating point of the units that are on"""
    row = m.rows[IndexTable.UnitsOnAndOutflows][i]
    asset = m.graph.asset(row['asset'])
    k = m.units_on_row_of[i]
    return flow_sum(m, row['outgoing_terms']) - \
        _availability(m, row) * asset.capacity * asset.min_operating_point * m.units_on[k]


def min_output_flow_with_unit_commitment_rule(m, i):
    if not m.rows[IndexTable.UnitsOnAndOutflows][i]['outgoing_terms']:
        return Constraint.Skip
    return _flow_above_min_operating_point_uc(m, i) >= 0


def max_output_flow_with_basic_unit_commitment_rule(m, i):
    row = m.rows[IndexTable.UnitsOnAndOutflows][i]
    if not row['outgoing_terms'] or row['asset'] not in m.sets.Auc_basic:
        return Constraint.Skip
    asset = m.graph.asset(row['asset'])
    return _flow_above_min_operating_point_uc(m, i) <= (1 - asset.min_operating_point) * \
        _availability(m, row) * asset.capacity * m.units_on[m.units_on_row_of[i]]


def _ramping_rows_uc(m, i):
    """(row, previous row index) of a unit commitment ramping row, None if there is nothing to constrain"""
    row = m.rows[IndexTable.UnitsOnAndOutflows][i]
    if row['asset'] not in m.sets.Ar or row['asset'] not in m.sets.Auc_basic or not row['outgoing_terms']:
        return None
    previous = m.previous_row[IndexTable.UnitsOnAndOutflows][i]
    if previous is None:
        return None
    return row, previous


def max_ramp_up_with_unit_commitment_rule(m, i):
    rows = _ramping_rows_uc(m, i)
    asset = m.graph.asset(m.rows[IndexTable.UnitsOnAndOutflows][i]['asset'])
    if rows is None or asset.max_ramp_up is None:
        return Constraint.Skip
    row, previous = rows
    return _flow_above_min_operating_point_uc(m, i) - _flow_above_min_operating_point_uc(m, previous) <= \
        asset.max_ramp_up * row['min_outgoing_flow_duration'] * _availability(m, row) * asset.capacity * \
        m.units_on[m.units_on_row_of[i]]


def max_ramp_down_with_unit_commitment_rule(m, i):
    rows = _ramping_rows_uc(m, i)
    asset = m.graph.asset(m.rows[IndexTable.UnitsOnAndOutflows][i]['asset'])
    if rows is None or asset.max_ramp_down is None:
        return Constraint.Skip
    row, previous = rows
    return _flow_above_min_operating_point_uc(m, i) - _flow_above_min_operating_point_uc(m, previous) >= \
        -asset.max_ramp_down * row['min_outgoing_flow_duration'] * _availability(m, row) * asset.capacity * \
        m.units_on[m.units_on_row_of[previous]]


def _flow_above_min_operating_point(m, i):
    row = m.rows[IndexTable.HighestOut][i]
    asset = m.graph.asset(row['asset'])
    return flow_sum(m, row['outgoing_terms']) - _availability(m, row) * asset.capacity * asset.min_operating_point


def _ramping_rows(m, i):
    row = m.rows[IndexTable.HighestOut][i]
    if row['asset'] not in m.sets.Ar or row['asset'] in m.sets.Auc or not row['outgoing_terms']:
        return None
    previous = m.previous_row[IndexTable.HighestOut][i]
    if previous is None:
        return None
    return row, previous


def max_ramp_up_without_unit_commitment_rule(m, i):
    rows = _ramping_rows(m, i)
    asset = m.graph.asset(m.rows[IndexTable.HighestOut][i]['asset'])
    if rows is None or asset.max_ramp_up is None:
        return Constraint.Skip
    row, previous = rows
    return _flow_above_min_operating_point(m, i) - _flow_above_min_operating_point(m, previous) <= \
        asset.max_ramp_up * row['min_outgoing_flow_duration'] * m.assets_profile_times_capacity_out[i]


def max_ramp_down_without_unit_commitment_rule(m, i):
    rows = _ramping_rows(m, i)
    asset = m.graph.asset(m.rows[IndexTable.HighestOut][i]['asset'])
    if rows is None or asset.max_ramp_down is None:
        return Constraint.Skip
    row, previous = rows
    return _flow_above_min_operating_point(m, i) - _flow_above_min_operating_point(m, previous) >= \
        -asset.max_ramp_down * row['min_outgoing_flow_duration'] * m.assets_profile_times_capacity_out[i]


# COSTS

def _operation_weight(m, y):
    params = m.model_parameters
    return operation_discount_weight(y, m.discount_year, params.discount_rate) * m.milestone_intervals[y]


def _investment_weight(m, element, y):
    return investment_discount_weight(y, m.discount_year, max(m.sets.Y), element.economic_lifetime,
                                      element.discount_rate, m.model_parameters.discount_rate)


def assets_investment_cost_rule(m):
    return sum(
        _investment_weight(m, m.graph.asset(a), y) * (m.graph.asset(a).investment_cost.get(y) or 0.0)
        * m.graph.asset(a).capacity * m.assets_investment[y, a]
        for (y, a) in m.assets_investment_index)


def assets_investment_energy_cost_rule(m):
    return sum(
        _investment_weight(m, m.graph.asset(a), y) * (m.graph.asset(a).investment_cost_storage_energy.get(y) or 0.0)
        * m.graph.asset(a).capacity_storage_energy * m.assets_investment_energy[y, a]
        for (y, a) in m.assets_investment_energy_index)


def assets_fixed_cost_rule(m):
    """simple and no investment method per milestone year, compact method per vintage"""
    costs = 0
    for a in m.sets.A:
        asset = m.graph.asset(a)
        if a in m.sets.A_compact:
            continue
        for y in m.sets.Y:
            fixed_cost = asset.fixed_cost.get(y) or 0.0
            if fixed_cost and asset.is_active(y):
                costs += _operation_weight(m, y) * fixed_cost * asset.capacity * m.accumulated_units[a, y]
    for (a, y, v) in m.accumulated_compact_index:
        asset = m.graph.asset(a)
        fixed_cost = asset.fixed_cost.get(v) or 0.0
        if fixed_cost:
            costs += _operation_weight(m, y) * fixed_cost * asset.capacity * m.accumulated_units_compact[a, y, v]
    return costs


def storage_energy_fixed_cost_rule(m):
    costs = 0
    for (y, a) in m.storage_years_index:
        asset = m.graph.asset(a)
        fixed_cost = asset.fixed_cost_storage_energy.get(y) or 0.0
        if asset.storage_method_energy and fixed_cost:
            costs += _operation_weight(m, y) * fixed_cost * m.accumulated_energy_capacity[y, a]
    return costs


def flows_investment_cost_rule(m):
    return sum(
        _investment_weight(m, m.graph.flow(u, v), y) * (m.graph.flow(u, v).investment_cost.get(y) or 0.0)
        * m.graph.flow(u, v).capacity * m.flows_investment[y, u, v]
        for (y, u, v) in m.flows_investment_index)


def flows_fixed_cost_rule(m):
    """transport flows pay half of the fixed cost per direction"""
    costs = 0
    for (y, u, v) in m.transport_years_index:
        flow = m.graph.flow(u, v)
        fixed_cost = flow.fixed_cost.get(y) or 0.0
        if fixed_cost:
            costs += _operation_weight(m, y) * fixed_cost / 2 * flow.capacity * (
                m.accumulated_flows_export_units[y, u, v] + m.accumulated_flows_import_units[y, u, v])
    return costs


def flows_variable_cost_rule(m):
    costs = 0
    for row in m.rows[IndexTable.Flows]:
        y, rp = row['year'], row['rep_period']
        variable_cost = m.graph.flow(row['from_asset'], row['to_asset']).variable_cost.get(y) or 0.0
        if variable_cost:
            representative_period = m.representative_periods[y][rp]
            costs += (_operation_weight(m, y) * representative_period.weight
                      * representative_period.duration(*_block(row)) * variable_cost * m.flow[row['index']])
    return costs


def units_on_cost_rule(m):
    costs = 0
    for row in m.rows[IndexTable.UnitsOn]:
        y, rp = row['year'], row['rep_period']
        units_on_cost = m.graph.asset(row['asset']).units_on_cost.get(y) or 0.0
        if units_on_cost:
            representative_period = m.representative_periods[y][rp]
            costs += (_operation_weight(m, y) * representative_period.weight
                      * representative_period.duration(*_block(row)) * units_on_cost * m.units_on[row['index']])
    return costs


def objective_function(m):
    costs = (
        m.assets_investment_cost + m.assets_investment_energy_cost + m.assets_fixed_cost
        + m.storage_energy_fixed_cost + m.flows_investment_cost + m.flows_fixed_cost
        + m.flows_variable_cost + m.units_on_cost
    )

    return costs


def init_pyomo_model(graph, representative_periods: dict, timeframe, groups: list, years: list, dataframes: dict,
                     sets: IndexSets, model_parameters: ModelParameters = None) -> ConcreteModel:
    """
    Initializes the Pyomo ConcreteModel of the energy problem. Variables are allocated per row of
    the aligned index tables, accumulation of installed units over the milestone years is
    expressed with Expressions and every physical or economic rule is a Constraint built by one
    of the rule functions of this module.

    :param graph: Frozen energy graph.
    :type graph: EnergyGraph
    :param representative_periods: {year: {rep_period: RepresentativePeriod}}
    :type representative_periods: dict
    :param timeframe: Timeframe of the periods.
    :type timeframe: Timeframe
    :param groups: Investment groups.
    :type groups: list[Group]
    :param years: All years.
    :type years: list[Year]
    :param dataframes: Index tables with their flow terms, see `time_resolution.construct_dataframes`.
    :type dataframes: dict
    :param sets: Index sets, see `index_sets.create_sets`.
    :type sets: IndexSets
    :param model_parameters: Social discount rate and discount year. Defaults from `const`.
    :type model_parameters: ModelParameters, optional
    :return: Pyomo ConcreteModel instance ready to be solved.
    :rtype: pyomo.environ.ConcreteModel
    """
    logger.info('initializing model... ')
    if model_parameters is None:
        model_parameters = ModelParameters()

    m = ConcreteModel()
    m.graph = graph
    m.sets = sets
    m.representative_periods = representative_periods
    m.timeframe = timeframe
    m.groups = list(groups)
    m.years = list(years)
    m.model_parameters = model_parameters
    m.discount_year = model_parameters.get_discount_year(list(sets.Y))
    m.milestone_intervals = milestone_intervals(list(sets.Y))
    m.dataframes = dataframes
    m.rows = {table: df.to_dict('records') for table, df in dataframes.items()}

    storage_intra_groups = _group_rows(m.rows[IndexTable.StorageLevelIntraRP], ['asset', 'year', 'rep_period'])
    storage_inter_groups = _group_rows(m.rows[IndexTable.StorageLevelInterRP], ['asset', 'year'])
    m.previous_row = {
        IndexTable.StorageLevelIntraRP: _previous_rows(storage_intra_groups),
        IndexTable.StorageLevelInterRP: _previous_rows(storage_inter_groups),
        IndexTable.HighestOut: _previous_rows(
            _group_rows(m.rows[IndexTable.HighestOut], ['asset', 'year', 'rep_period'])),
        IndexTable.UnitsOnAndOutflows: _previous_rows(
            _group_rows(m.rows[IndexTable.UnitsOnAndOutflows], ['asset', 'year', 'rep_period'])),
    }
    m.last_row_of_storage_intra_rp = {key: indices[-1] for key, indices in storage_intra_groups.items()}
    m.last_row_of_storage_inter_rp = {key: indices[-1] for key, indices in storage_inter_groups.items()}
    m.units_on_row_of = _containing_rows(m.rows[IndexTable.UnitsOnAndOutflows], m.rows[IndexTable.UnitsOn])
    m.is_charging_row_of_highest_out = _containing_rows(m.rows[IndexTable.HighestOut], m.rows[IndexTable.IsCharging])
    m.is_charging_row_of_highest_in = _containing_rows(m.rows[IndexTable.HighestIn], m.rows[IndexTable.IsCharging])

    # SETS
    m.milestone_years = Set(initialize=list(sets.Y), doc='Milestone years')
    m.assets = Set(initialize=list(sets.A), doc='All assets')
    for table, df in dataframes.items():
        m.add_component(f'{table.value}_rows', Set(initialize=list(range(len(df))),
                                                   doc=f'Rows of the {table.value} index table'))
    m.assets_investment_index = Set(
        dimen=2,
        initialize=[(y, a) for y in sets.Y for a in sets.Ai[y]],
        doc='(year, asset) with investments'
    )
    m.assets_investment_energy_index = Set(
        dimen=2,
        initialize=[(y, a) for y in sets.Y for a in sets.Ase[y] if a in sets.Ai[y]],
        doc='(year, storage asset) with separate energy investments'
    )
    m.flows_investment_index = Set(
        dimen=3,
        initialize=[(y, u, v) for y in sets.Y for (u, v) in sets.Fi[y]],
        doc='(year, from_asset, to_asset) with investments'
    )
    m.decommission_simple_index = Set(
        dimen=2,
        initialize=list(sets.decommission_set_simple),
        doc='(asset, year) that can be decommissioned, simple investment method'
    )
    m.decommission_compact_index = Set(
        dimen=3,
        initialize=list(sets.decommission_set_compact),
        doc='(asset, year, commission year) that can be decommissioned, compact investment method'
    )
    m.accumulated_compact_index = Set(
        dimen=3,
        initialize=list(sets.accumulated_set_compact),
        doc='(asset, year, commission year) vintages installed in a year, compact investment method'
    )
    m.flows_decommission_index = Set(
        dimen=3,
        initialize=[(y, u, v) for ((u, v), y) in sets.decommissionable_flows],
        doc='(year, from_asset, to_asset) transport flows that can be decommissioned'
    )
    m.storage_years_index = Set(
        dimen=2,
        initialize=[(y, a) for y in sets.Y for a in sets.As],
        doc='(year, storage asset)'
    )
    m.transport_years_index = Set(
        dimen=3,
        initialize=[(y, u, v) for y in sets.Y for (u, v) in sets.Ft],
        doc='(year, from_asset, to_asset) of transport flows'
    )
    m.storage_intra_rp_final_index = Set(
        dimen=3,
        initialize=[key for key in storage_intra_groups if graph.asset(key[0]).initial_storage_level.get(key[1])
                    is not None],
        doc='(asset, year, rep_period) of storage with a declared initial level'
    )
    m.storage_inter_rp_final_index = Set(
        dimen=2,
        initialize=[key for key in storage_inter_groups if graph.asset(key[0]).initial_storage_level.get(key[1])
                    is not None],
        doc='(asset, year) of seasonal storage with a declared initial level'
    )
    m.groups_index = Set(initialize=list(range(len(m.groups))), doc='Investment groups')

    # VARIABLES
    m.flow = Var(
        m.flows_rows,
        within=flow_domain_rule,
        doc='Flow per row of the flows table')
    m.assets_investment = Var(
        m.assets_investment_index,
        within=assets_investment_domain_rule,
        bounds=assets_investment_bounds_rule,
        doc='Invested units per year and asset')
    m.assets_investment_energy = Var(
        m.assets_investment_energy_index,
        within=assets_investment_energy_domain_rule,
        bounds=assets_investment_energy_bounds_rule,
        doc='Invested storage energy units per year and asset')
    m.flows_investment = Var(
        m.flows_investment_index,
        within=flows_investment_domain_rule,
        bounds=flows_investment_bounds_rule,
        doc='Invested units per year and flow')
    m.assets_decommission_simple = Var(
        m.decommission_simple_index,
        within=NonNegativeReals,
        doc='Decommissioned units, simple investment method')
    m.assets_decommission_compact = Var(
        m.decommission_compact_index,
        within=NonNegativeReals,
        doc='Decommissioned units per vintage, compact investment method')
    m.flows_decommission = Var(
        m.flows_decommission_index,
        within=NonNegativeReals,
        doc='Decommissioned transport units')
    m.storage_level_intra_rp = Var(
        m.storage_level_intra_rp_rows,
        within=NonNegativeReals,
        doc='Storage level at the end of a block within a representative period')
    m.storage_level_inter_rp = Var(
        m.storage_level_inter_rp_rows,
        within=NonNegativeReals,
        doc='Storage level at the end of a periods block of the timeframe')
    m.units_on = Var(
        m.units_on_rows,
        within=units_on_domain_rule,
        doc='Units on per block of unit commitment assets')
    m.is_charging = Var(
        m.is_charging_rows,
        within=is_charging_domain_rule,
        doc='Charging indicator of storage using the binary method')

    # EXPRESSIONS
    m.accumulated_initial_units = Expression(m.assets, m.milestone_years, rule=accumulated_initial_units_rule)
    m.accumulated_units_compact = Expression(m.accumulated_compact_index, rule=accumulated_units_compact_rule)
    m.accumulated_units = Expression(m.assets, m.milestone_years, rule=accumulated_units_rule)
    m.accumulated_investment_units = Expression(m.assets, m.milestone_years, rule=accumulated_investment_units_rule)
    m.accumulated_flows_export_units = Expression(m.transport_years_index, rule=accumulated_flows_export_units_rule)
    m.accumulated_flows_import_units = Expression(m.transport_years_index, rule=accumulated_flows_import_units_rule)
    m.accumulated_energy_capacity = Expression(m.storage_years_index, rule=accumulated_energy_capacity_rule)
    m.assets_profile_times_capacity_out = Expression(m.highest_out_rows, rule=assets_profile_times_capacity_out_rule)
    m.max_energy_inter_rp = Expression(m.max_energy_inter_rp_rows, rule=max_energy_inter_rp_rule)
    m.min_energy_inter_rp = Expression(m.min_energy_inter_rp_rows, rule=min_energy_inter_rp_rule)

    m.assets_investment_cost = Expression(rule=assets_investment_cost_rule)
    m.assets_investment_energy_cost = Expression(rule=assets_investment_energy_cost_rule)
    m.assets_fixed_cost = Expression(rule=assets_fixed_cost_rule)
    m.storage_energy_fixed_cost = Expression(rule=storage_energy_fixed_cost_rule)
    m.flows_investment_cost = Expression(rule=flows_investment_cost_rule)
    m.flows_fixed_cost = Expression(rule=flows_fixed_cost_rule)
    m.flows_variable_cost = Expression(rule=flows_variable_cost_rule)
    m.units_on_cost = Expression(rule=units_on_cost_rule)

    # OBJECTIVE
    m.objective_function = Objective(rule=objective_function, sense=minimize, doc='Discounted total system costs')

    # CONSTRAINTS
    # capacity
    m.max_output_flows_limit = Constraint(m.highest_out_rows, rule=max_output_flows_limit_rule)
    m.max_output_flows_limit_with_binary_part1 = Constraint(
        m.highest_out_rows, rule=max_output_flows_limit_with_binary_part1_rule)
    m.max_output_flows_limit_with_binary_part2 = Constraint(
        m.highest_out_rows, rule=max_output_flows_limit_with_binary_part2_rule)
    m.max_input_flows_limit = Constraint(m.highest_in_rows, rule=max_input_flows_limit_rule)
    m.max_input_flows_limit_with_binary_part1 = Constraint(
        m.highest_in_rows, rule=max_input_flows_limit_with_binary_part1_rule)
    m.max_input_flows_limit_with_binary_part2 = Constraint(
        m.highest_in_rows, rule=max_input_flows_limit_with_binary_part2_rule)

    # decommissioning
    m.assets_decommission_simple_limit = Constraint(m.decommission_simple_index,
                                                    rule=assets_decommission_simple_limit_rule)
    m.assets_decommission_compact_limit = Constraint(m.decommission_compact_index,
                                                     rule=assets_decommission_compact_limit_rule)
    m.flows_decommission_export_limit = Constraint(m.flows_decommission_index,
                                                   rule=flows_decommission_export_limit_rule)
    m.flows_decommission_import_limit = Constraint(m.flows_decommission_index,
                                                   rule=flows_decommission_import_limit_rule)

    # energy limits
    m.max_energy_inter_rp_limit = Constraint(m.max_energy_inter_rp_rows, rule=max_energy_inter_rp_limit_rule)
    m.min_energy_inter_rp_limit = Constraint(m.min_energy_inter_rp_rows, rule=min_energy_inter_rp_limit_rule)

    # balances
    m.consumer_balance = Constraint(m.highest_in_out_rows, rule=consumer_balance_rule)
    m.hub_balance = Constraint(m.highest_in_out_rows, rule=hub_balance_rule)
    m.conversion_balance = Constraint(m.lowest_rows, rule=conversion_balance_rule)

    # storage
    m.storage_intra_rp_balance = Constraint(m.storage_level_intra_rp_rows, rule=storage_intra_rp_balance_rule)
    m.max_storage_level_intra_rp_limit = Constraint(m.storage_level_intra_rp_rows,
                                                    rule=max_storage_level_intra_rp_limit_rule)
    m.min_storage_level_intra_rp_limit = Constraint(m.storage_level_intra_rp_rows,
                                                    rule=min_storage_level_intra_rp_limit_rule)
    m.storage_intra_rp_final_level = Constraint(m.storage_intra_rp_final_index,
                                                rule=storage_intra_rp_final_level_rule)
    m.storage_inter_rp_balance = Constraint(m.storage_level_inter_rp_rows, rule=storage_inter_rp_balance_rule)
    m.max_storage_level_inter_rp_limit = Constraint(m.storage_level_inter_rp_rows,
                                                    rule=max_storage_level_inter_rp_limit_rule)
    m.min_storage_level_inter_rp_limit = Constraint(m.storage_level_inter_rp_rows,
                                                    rule=min_storage_level_inter_rp_limit_rule)
    m.storage_inter_rp_final_level = Constraint(m.storage_inter_rp_final_index,
                                                rule=storage_inter_rp_final_level_rule)

    # transport
    m.max_transport_flow_limit = Constraint(m.flows_rows, rule=max_transport_flow_limit_rule)
    m.min_transport_flow_limit = Constraint(m.flows_rows, rule=min_transport_flow_limit_rule)

    # groups
    if m.groups:
        m.group_max_investment_limit = Constraint(m.groups_index, rule=group_max_investment_limit_rule)
        m.group_min_investment_limit = Constraint(m.groups_index, rule=group_min_investment_limit_rule)

    # unit commitment
    m.limit_units_on = Constraint(m.units_on_rows, rule=limit_units_on_rule)
    m.min_output_flow_with_unit_commitment = Constraint(m.units_on_and_outflows_rows,
                                                        rule=min_output_flow_with_unit_commitment_rule)
    m.max_output_flow_with_basic_unit_commitment = Constraint(m.units_on_and_outflows_rows,
                                                              rule=max_output_flow_with_basic_unit_commitment_rule)

    # ramping
    m.max_ramp_up_with_unit_commitment = Constraint(m.units_on_and_outflows_rows,
                                                    rule=max_ramp_up_with_unit_commitment_rule)
    m.max_ramp_down_with_unit_commitment = Constraint(m.units_on_and_outflows_rows,
                                                      rule=max_ramp_down_with_unit_commitment_rule)
    m.max_ramp_up_without_unit_commitment = Constraint(m.highest_out_rows,
                                                       rule=max_ramp_up_without_unit_commitment_rule)
    m.max_ramp_down_without_unit_commitment = Constraint(m.highest_out_rows,
                                                         rule=max_ramp_down_without_unit_commitment_rule)

    logger.info(f'model initialized with {m.nvariables()} variables and {m.nconstraints()} constraints')

    return m


def write_lp_file(m: ConcreteModel, fpath: str):
    m.write(fpath, io_options={'symbolic_solver_labels': True})
    logger.info(f'model written to {fpath}')

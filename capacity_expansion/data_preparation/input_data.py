"""
capacity_expansion/data_preparation/input_data.py

Builds the in-memory data model of an energy problem from its validated input tables.

Main callables:

- create_internal_structures(tables) -> (graph, representative_periods, timeframe, groups, years)
    Reads years, representative periods, the timeframe and investment groups, builds the energy
    graph with one AssetData record per asset and one FlowData record per flow, resolves the time
    partitions of every asset and flow for every milestone year and representative period, attaches
    the profiles and freezes the graph.

Layout of the returned structures:

- years: list of Year, sorted by year.
- representative_periods: {milestone year: {rep_period id: RepresentativePeriod}}, sorted by id.
- timeframe: Timeframe with the number of periods and the period -> rep_period mapping.
- groups: list of Group.

Errors:

- InputValidationError for inconsistent years, representative periods, profiles or partitions;
- StructureError for duplicate assets/flows and for rows referencing unknown assets or flows.
"""

import logging

import numpy as np
import pandas as pd

from capacity_expansion.const import InputTable, ProfileType
from capacity_expansion.data_preparation.data_formats import InputTables
from capacity_expansion.data_preparation.partitions import resolve_partition, default_partition, \
    build_partition_lookup
from capacity_expansion.exceptions import InputValidationError, StructureError
from capacity_expansion.helper import is_missing, to_bool, optional_float
from capacity_expansion.model.components import (Year, RepresentativePeriod, Timeframe, Group, AssetData, FlowData,
                                                 EnergyGraph)

logger = logging.getLogger(__name__)

ASSET_BOOL_COLUMNS = ['investment_integer', 'is_seasonal', 'unit_commitment', 'unit_commitment_integer', 'ramping',
                      'storage_method_energy', 'investment_integer_storage_energy']
ASSET_OPTIONAL_STR_COLUMNS = ['group', 'consumer_balance_sense', 'use_binary_storage_method',
                              'unit_commitment_method']
ASSET_OPTIONAL_FLOAT_COLUMNS = ['max_ramp_up', 'max_ramp_down']
YEAR_BOOL_ATTRIBUTES = ['investable', 'active', 'decommissionable']
CONSUMER_BALANCE_SENSES = ['==', '>=']


def _clean(val):
    """table cell as plain python value, None when missing"""
    if is_missing(val):
        return None
    if isinstance(val, np.generic):
        return val.item()
    return val


def _rows_by_key(df: pd.DataFrame, key_columns: list) -> dict:
    rows = {}
    for row in df.to_dict('records'):
        rows.setdefault(tuple(row[c] for c in key_columns), []).append(row)
    return rows


def _per_year(rows: list, year_column: str, attributes: tuple, label: str) -> dict:
    """{attribute: {year: value}} from the rows of one asset/flow"""
    data = {attr: {} for attr in attributes}
    for row in rows:
        year = int(row[year_column])
        for attr in attributes:
            if year in data[attr]:
                raise InputValidationError(f"{label}: duplicate entry for {year_column} {year}")
            val = to_bool(row[attr]) if attr in YEAR_BOOL_ATTRIBUTES else _clean(row[attr])
            data[attr][year] = val
    return data


def _per_both_years(rows: list, attributes: tuple, label: str) -> dict:
    """{attribute: {milestone_year: {commission_year: value}}} from the rows of one asset/flow"""
    data = {attr: {} for attr in attributes}
    for row in rows:
        milestone_year, commission_year = int(row['milestone_year']), int(row['commission_year'])
        for attr in attributes:
            per_commission = data[attr].setdefault(milestone_year, {})
            if commission_year in per_commission:
                raise InputValidationError(
                    f"{label}: duplicate entry for milestone year {milestone_year} and commission year "
                    f"{commission_year}")
            val = to_bool(row[attr]) if attr in YEAR_BOOL_ATTRIBUTES else _clean(row[attr])
            per_commission[commission_year] = val
    return data


def _read_years(df: pd.DataFrame) -> list[Year]:
    if df['year'].duplicated().any():
        raise InputValidationError(f"Duplicate years in 'year_data': {sorted(df['year'][df['year'].duplicated()])}")
    years = [Year(row['year'], row['length'], to_bool(row['is_milestone'])) for row in df.to_dict('records')]
    years.sort(key=lambda y: y.id)
    if not any(y.is_milestone for y in years):
        raise InputValidationError("'year_data' does not define any milestone year")
    return years


def _read_representative_periods(tables: InputTables, milestone_years: list[int]) -> dict:
    mapping = tables[InputTable.RepPeriodsMapping]
    weights = mapping.groupby(['year', 'rep_period'])['weight'].sum().to_dict()
    rp_data = tables[InputTable.RepPeriodsData]

    representative_periods = {}
    for year in milestone_years:
        rows = rp_data[rp_data['year'] == year].sort_values('rep_period')
        if rows.empty:
            raise InputValidationError(f"No representative periods defined for milestone year {year}")
        if rows['rep_period'].duplicated().any():
            raise InputValidationError(f"Duplicate representative periods in year {year}")
        representative_periods[year] = {}
        for row in rows.to_dict('records'):
            rp = int(row['rep_period'])
            weight = weights.get((year, rp))
            if weight is None:
                logger.warning(f"representative period {rp} of year {year} is not mapped to any period")
                weight = 0.0
            representative_periods[year][rp] = RepresentativePeriod(weight, row['num_timesteps'], row['resolution'])

    unknown = [(y, rp) for (y, rp) in weights if y in representative_periods and rp not in representative_periods[y]]
    if unknown:
        raise InputValidationError(f"'rep_periods_mapping' references undefined representative periods {unknown}")

    return representative_periods


def _read_timeframe(tables: InputTables) -> Timeframe:
    mapping = tables[InputTable.RepPeriodsMapping][['year', 'period', 'rep_period', 'weight']]
    mapping = mapping.sort_values(['year', 'period', 'rep_period']).reset_index(drop=True)
    num_periods = int(mapping['period'].max()) if len(mapping) else 0
    return Timeframe(num_periods, mapping)


def _read_groups(df: pd.DataFrame) -> list[Group]:
    return [
        Group(row['name'], row['year'], to_bool(row['invest_method']),
              optional_float(row['min_investment_limit']), optional_float(row['max_investment_limit']))
        for row in df.to_dict('records')
    ]


def _create_asset(row: dict, milestone_rows, commission_rows, both_rows) -> AssetData:
    name = row['asset']
    label = f"asset '{name}'"
    params = {col: to_bool(row[col]) for col in ASSET_BOOL_COLUMNS}
    params.update({col: _clean(row[col]) for col in ASSET_OPTIONAL_STR_COLUMNS})
    params.update({col: optional_float(row[col]) for col in ASSET_OPTIONAL_FLOAT_COLUMNS})
    if params['consumer_balance_sense'] is not None:
        params['consumer_balance_sense'] = str(params['consumer_balance_sense']).strip()
        if params['consumer_balance_sense'] not in CONSUMER_BALANCE_SENSES:
            raise InputValidationError(
                f"{label}: consumer_balance_sense must be one of {CONSUMER_BALANCE_SENSES}, "
                f"got '{params['consumer_balance_sense']}'")

    return AssetData(
        name=name,
        type=str(row['type']).strip(),
        capacity=row['capacity'],
        min_operating_point=row['min_operating_point'],
        investment_method=str(row['investment_method']).strip(),
        technical_lifetime=row['technical_lifetime'],
        economic_lifetime=row['economic_lifetime'],
        discount_rate=row['discount_rate'],
        capacity_storage_energy=row['capacity_storage_energy'],
        energy_to_power_ratio=row['energy_to_power_ratio'],
        **params,
        **_per_year(milestone_rows, 'milestone_year', AssetData.milestone_attributes, label),
        **_per_year(commission_rows, 'commission_year', AssetData.commission_attributes, label),
        **_per_both_years(both_rows, AssetData.both_attributes, label),
    )


def _create_flow(row: dict, milestone_rows, commission_rows, both_rows) -> FlowData:
    label = f"flow ('{row['from_asset']}', '{row['to_asset']}')"
    return FlowData(
        from_asset=row['from_asset'],
        to_asset=row['to_asset'],
        carrier=_clean(row['carrier']),
        is_transport=to_bool(row['is_transport']),
        capacity=row['capacity'],
        technical_lifetime=row['technical_lifetime'],
        economic_lifetime=row['economic_lifetime'],
        discount_rate=row['discount_rate'],
        investment_integer=to_bool(row['investment_integer']),
        **_per_year(milestone_rows, 'milestone_year', FlowData.milestone_attributes, label),
        **_per_year(commission_rows, 'commission_year', FlowData.commission_attributes, label),
        **_per_both_years(both_rows, FlowData.both_attributes, label),
    )


def _check_references(keys, graph: EnergyGraph, table: InputTable):
    for key in keys:
        if key not in graph:
            raise StructureError(f"Table '{table.value}' references the unknown {'flow' if isinstance(key, tuple) else 'asset'} {key}")


def build_graph(tables: InputTables, milestone_years: list[int]) -> EnergyGraph:
    """
    Create the energy graph with all asset and flow records. The graph is not frozen yet.
    """
    graph = EnergyGraph()

    asset_keys = ['asset']
    milestone_rows = _rows_by_key(tables[InputTable.AssetMilestone], asset_keys)
    commission_rows = _rows_by_key(tables[InputTable.AssetCommission], asset_keys)
    both_rows = _rows_by_key(tables[InputTable.AssetBoth], asset_keys)
    for row in tables[InputTable.Asset].to_dict('records'):
        key = (row['asset'],)
        asset = _create_asset(row, milestone_rows.get(key, []), commission_rows.get(key, []), both_rows.get(key, []))
        asset.validate_years(milestone_years)
        graph.add_asset(asset)

    for table, rows in ((InputTable.AssetMilestone, milestone_rows), (InputTable.AssetCommission, commission_rows),
                        (InputTable.AssetBoth, both_rows)):
        _check_references([k[0] for k in rows], graph, table)

    flow_keys = ['from_asset', 'to_asset']
    milestone_rows = _rows_by_key(tables[InputTable.FlowMilestone], flow_keys)
    commission_rows = _rows_by_key(tables[InputTable.FlowCommission], flow_keys)
    both_rows = _rows_by_key(tables[InputTable.FlowBoth], flow_keys)
    for row in tables[InputTable.Flow].to_dict('records'):
        key = (row['from_asset'], row['to_asset'])
        flow = _create_flow(row, milestone_rows.get(key, []), commission_rows.get(key, []), both_rows.get(key, []))
        graph.add_flow(flow)
        flow.validate_years(milestone_years)

    for table, rows in ((InputTable.FlowMilestone, milestone_rows), (InputTable.FlowCommission, commission_rows),
                        (InputTable.FlowBoth, both_rows)):
        _check_references(list(rows), graph, table)

    return graph


def _resolve(lookup: dict, key: tuple, total: int, label: str, fallback) -> list[range]:
    entry = lookup.get(key)
    if entry is None:
        return fallback(total)
    try:
        return resolve_partition(entry[0], entry[1], total)
    except InputValidationError as e:
        raise InputValidationError(f"{label}: {e}") from e


def add_partitions(graph: EnergyGraph, tables: InputTables, representative_periods: dict, timeframe: Timeframe):
    """
    Resolve the representative period partitions of all assets and flows and the timeframe
    partitions of seasonal assets and assets with energy limits, for every milestone year.
    """
    asset_lookup = build_partition_lookup(tables[InputTable.AssetsRepPeriodsPartitions],
                                          ['asset', 'year', 'rep_period'])
    _check_references({k[0] for k in asset_lookup}, graph, InputTable.AssetsRepPeriodsPartitions)
    flow_lookup = build_partition_lookup(tables[InputTable.FlowsRepPeriodsPartitions],
                                         ['from_asset', 'to_asset', 'year', 'rep_period'])
    _check_references({k[:2] for k in flow_lookup}, graph, InputTable.FlowsRepPeriodsPartitions)
    timeframe_lookup = build_partition_lookup(tables[InputTable.AssetsTimeframePartitions], ['asset'])
    _check_references({k[0] for k in timeframe_lookup}, graph, InputTable.AssetsTimeframePartitions)

    for year, rps in representative_periods.items():
        for rp_id, rp in rps.items():
            for asset in graph.assets():
                asset.set_rep_period_partition(year, rp_id, _resolve(
                    asset_lookup, (asset.name, year, rp_id), rp.num_timesteps,
                    f"{asset.label}, year {year}, rep_period {rp_id}", default_partition))
            for flow in graph.flows():
                flow.set_rep_period_partition(year, rp_id, _resolve(
                    flow_lookup, (*flow.key, year, rp_id), rp.num_timesteps,
                    f"{flow.label}, year {year}, rep_period {rp_id}", default_partition))

        for asset in graph.assets():
            if asset.is_seasonal or asset.has_energy_limits():
                asset.set_timeframe_partition(year, _resolve(
                    timeframe_lookup, (asset.name,), timeframe.num_periods, f"{asset.label}, timeframe",
                    lambda total: resolve_partition('uniform', '1', total)))


def _profile_type(val, table: InputTable) -> str:
    try:
        return ProfileType(str(val).strip()).value
    except ValueError:
        raise InputValidationError(f"Unknown profile type '{val}' in table '{table.value}'")


def _profile_values(profiles: pd.DataFrame, profile_name: str, order_column: str) -> dict:
    """{(year, rep_period or None): values} of one profile"""
    rows = profiles[profiles['profile_name'] == profile_name]
    if rows.empty:
        raise InputValidationError(f"Profile '{profile_name}' has no values")
    group_columns = ['year', 'rep_period'] if 'rep_period' in rows.columns else ['year']
    values = {}
    for key, sub_df in rows.groupby(group_columns):
        key = key if isinstance(key, tuple) else (key,)
        sub_df = sub_df.sort_values(order_column)
        if sub_df[order_column].duplicated().any():
            raise InputValidationError(f"Profile '{profile_name}' has duplicate {order_column}s for {key}")
        values[tuple(int(k) for k in key)] = sub_df['value'].to_numpy(dtype=float)
    return values


def add_profiles(graph: EnergyGraph, tables: InputTables, representative_periods: dict, timeframe: Timeframe):
    """
    Attach the representative period profiles of assets and flows and the timeframe profiles of
    assets. Profile values are validated against the number of timesteps (or periods).
    """
    profiles = tables[InputTable.ProfilesRepPeriods]

    def check_length(values, year, rp, label):
        expected = representative_periods[year][rp].num_timesteps
        if len(values) != expected:
            raise InputValidationError(
                f"{label}: profile has {len(values)} values in year {year}, rep_period {rp}, expected {expected}")

    for row in tables[InputTable.AssetsProfiles].to_dict('records'):
        _check_references([row['asset']], graph, InputTable.AssetsProfiles)
        asset = graph.asset(row['asset'])
        profile_type = _profile_type(row['profile_type'], InputTable.AssetsProfiles)
        for (year, rp), values in _profile_values(profiles, row['profile_name'], 'timestep').items():
            if rp not in representative_periods.get(year, {}):
                continue
            check_length(values, year, rp, asset.label)
            asset.add_rep_period_profile(year, int(row['commission_year']), profile_type, rp, values)

    for row in tables[InputTable.FlowsProfiles].to_dict('records'):
        key = (row['from_asset'], row['to_asset'])
        _check_references([key], graph, InputTable.FlowsProfiles)
        flow = graph.flow(*key)
        profile_type = _profile_type(row['profile_type'], InputTable.FlowsProfiles)
        for (year, rp), values in _profile_values(profiles, row['profile_name'], 'timestep').items():
            if rp not in representative_periods.get(year, {}):
                continue
            check_length(values, year, rp, flow.label)
            flow.add_rep_period_profile(year, profile_type, rp, values)

    timeframe_profiles = tables[InputTable.ProfilesTimeframe]
    for row in tables[InputTable.AssetsTimeframeProfiles].to_dict('records'):
        _check_references([row['asset']], graph, InputTable.AssetsTimeframeProfiles)
        asset = graph.asset(row['asset'])
        profile_type = _profile_type(row['profile_type'], InputTable.AssetsTimeframeProfiles)
        commission_year = int(row['commission_year'])
        for (year,), values in _profile_values(timeframe_profiles, row['profile_name'], 'period').items():
            if year != commission_year or year not in representative_periods:
                continue
            if len(values) != timeframe.num_periods:
                raise InputValidationError(
                    f"{asset.label}: timeframe profile has {len(values)} values in year {year}, "
                    f"expected {timeframe.num_periods}")
            asset.add_timeframe_profile(year, commission_year, profile_type, values)


def create_internal_structures(tables: InputTables):
    """
    Create the graph, representative periods, timeframe, groups and years from the input tables.

    :param tables: Validated input tables.
    :type tables: InputTables
    :return: (graph, representative_periods, timeframe, groups, years)
    :rtype: tuple[EnergyGraph, dict, Timeframe, list[Group], list[Year]]
    """
    years = _read_years(tables[InputTable.YearData])
    milestone_years = [y.id for y in years if y.is_milestone]

    representative_periods = _read_representative_periods(tables, milestone_years)
    timeframe = _read_timeframe(tables)
    groups = _read_groups(tables[InputTable.GroupsData])

    graph = build_graph(tables, milestone_years)
    add_partitions(graph, tables, representative_periods, timeframe)
    add_profiles(graph, tables, representative_periods, timeframe)
    graph.freeze()

    logger.info(f"created {graph} with {sum(len(rps) for rps in representative_periods.values())} "
                f"representative periods in {len(milestone_years)} milestone years")

    return graph, representative_periods, timeframe, groups, years

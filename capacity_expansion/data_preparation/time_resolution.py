"""
capacity_expansion/data_preparation/time_resolution.py

Alignment of the time partitions of assets and flows onto the partitions the constraints are
written in.

Every asset and every flow has its own partition of the timesteps of each representative period.
A constraint that involves several flows (a balance, a capacity bound) is written on a partition
that is compatible with all of them:

- HIGHEST: the common refinement, cut at every block boundary of every input partition;
- LOWEST:  the coarsest partition in which each block covers at least one full block of every input.

Views (one index table each) computed per (asset, milestone year, representative period):

    lowest                  conversion assets, LOWEST of all flows and the asset
    highest_in_out          hubs and consumers, HIGHEST of all flows
    highest_in              storage, HIGHEST of the inflows (all flows with the binary method)
    highest_out             producers, storage and conversion, HIGHEST of the outflows
                            (all flows for storage with the binary method)
    storage_level_intra_rp  non-seasonal storage, the asset's own partition
    units_on                unit commitment assets, the asset's own partition
    units_on_and_outflows   unit commitment assets, HIGHEST of the asset and its outflows
    is_charging             storage with the binary method, HIGHEST of all flows

and per (asset, milestone year) on the periods of the timeframe:

    storage_level_inter_rp  seasonal storage
    max_energy_inter_rp     assets with a maximum energy limit in that year
    min_energy_inter_rp     assets with a minimum energy limit in that year

Main callables:

- compute_rp_partition(partitions, strategy) -> list[range]
- compute_constraints_partitions(graph, representative_periods, years) -> dict
- construct_dataframes(graph, representative_periods, constraints_partitions, timeframe, years) -> dict
- add_flow_terms(dataframes, graph, representative_periods)
- add_inter_rp_terms(dataframes, graph, representative_periods)

Flow terms are stored on the index tables as dictionaries {flow row index: coefficient} in the
columns 'incoming_terms' and 'outgoing_terms'; the model builder turns them into linear expressions.
"""

import logging

import pandas as pd

from capacity_expansion.const import AssetType, PartitionStrategy, IndexTable, BinaryStorageMethod
from capacity_expansion.exceptions import PartitionMismatchError
from capacity_expansion.helper import overlap_length
from capacity_expansion.model.components import EnergyGraph, AssetData, Timeframe, Year

logger = logging.getLogger(__name__)

RP_TABLES = [IndexTable.Lowest, IndexTable.HighestInOut, IndexTable.HighestIn, IndexTable.HighestOut,
             IndexTable.StorageLevelIntraRP, IndexTable.UnitsOn, IndexTable.UnitsOnAndOutflows, IndexTable.IsCharging]
TIMEFRAME_TABLES = [IndexTable.StorageLevelInterRP, IndexTable.MaxEnergyInterRP, IndexTable.MinEnergyInterRP]

# view: (energy mode, efficiency applied)
FLOW_TERMS_MODES = {
    IndexTable.Lowest: (True, True),
    IndexTable.HighestInOut: (False, True),
    IndexTable.HighestIn: (False, False),
    IndexTable.HighestOut: (False, False),
    IndexTable.StorageLevelIntraRP: (True, True),
    IndexTable.UnitsOnAndOutflows: (False, False),
}
INTER_RP_TERMS_EFFICIENCY = {
    IndexTable.StorageLevelInterRP: True,
    IndexTable.MaxEnergyInterRP: False,
    IndexTable.MinEnergyInterRP: False,
}


def _check_partitions(partitions: list[list[range]], context: str) -> int:
    """Check that all partitions are contiguous from 1 and end at the same timestep, return that end."""
    total = None
    for partition in partitions:
        expected_start = 1
        for block in partition:
            if len(block) == 0 or block.start != expected_start:
                raise PartitionMismatchError(
                    f"{context}: block {block.start}:{block.stop - 1} value does not match the expected start "
                    f"{expected_start}, partitions must be contiguous and start at 1")
            expected_start = block.stop
        end = expected_start - 1
        if total is None:
            total = end
        elif end != total:
            raise PartitionMismatchError(
                f"{context}: partition end {end} value does not match the end {total} of the other partitions")
    return total


def compute_rp_partition(partitions: list[list[range]], strategy, context: str = '') -> list[range]:
    """
    Combine several partitions of the same span into one.

    :param partitions: Partitions to combine, each a list of contiguous ranges starting at 1.
    :type partitions: list[list[range]]
    :param strategy: 'highest' for the common refinement, 'lowest' for the coarsest common cover.
    :type strategy: str or PartitionStrategy
    :param context: Asset, year and representative period, used in error messages.
    :return: The combined partition.
    :rtype: list[range]
    :raises PartitionMismatchError: If the partitions are not contiguous or cover different spans.
    """
    strategy = PartitionStrategy(strategy)
    total = _check_partitions(partitions, context)
    if total is None:
        return []

    if strategy == PartitionStrategy.Highest:
        ends = sorted({block.stop - 1 for partition in partitions for block in partition})
        blocks, block_start = [], 1
        for end in ends:
            blocks.append(range(block_start, end + 1))
            block_start = end + 1
        return blocks

    # lowest: extend each block to the largest end among the blocks containing its start
    positions = [0] * len(partitions)
    blocks, block_start = [], 1
    while block_start <= total:
        block_end = block_start
        for k, partition in enumerate(partitions):
            while partition[positions[k]].stop <= block_start:
                positions[k] += 1
            block_end = max(block_end, partition[positions[k]].stop - 1)
        blocks.append(range(block_start, block_end + 1))
        block_start = block_end + 1
    return blocks


def _uses_binary_storage(asset: AssetData) -> bool:
    return asset.type == AssetType.Storage and asset.use_binary_storage_method in (
        BinaryStorageMethod.Binary, BinaryStorageMethod.RelaxedBinary)


def _uses_unit_commitment(asset: AssetData) -> bool:
    return asset.unit_commitment and asset.type in (AssetType.Producer, AssetType.Conversion)


def _combine(partitions: list[list[range]], fallback: list[range], strategy, context: str) -> list[range]:
    """combination of the partitions, the asset's own partition when there is nothing to combine"""
    if not partitions:
        return list(fallback)
    return compute_rp_partition(partitions, strategy, context)


def compute_constraints_partitions(graph: EnergyGraph, representative_periods: dict, years: list[Year]) -> dict:
    """
    Compute the partitions of every constraint view.

    :param graph: Frozen energy graph.
    :param representative_periods: {year: {rep_period: RepresentativePeriod}}
    :param years: All years, the milestone years are used.
    :return: {IndexTable: {(asset, year, rep_period): list[range]}} for the representative period views
        and {IndexTable: {(asset, year): list[range]}} for the timeframe views.
    :rtype: dict
    """
    milestone_years = [y.id for y in years if y.is_milestone]
    partitions = {table: {} for table in RP_TABLES + TIMEFRAME_TABLES}

    for year in milestone_years:
        for asset in graph.assets():
            if not asset.is_active(year):
                continue
            a = asset.name
            incoming = graph.incoming_flows(a, year)
            outgoing = graph.outgoing_flows(a, year)

            for rp in representative_periods[year]:
                context = f"asset '{a}', year {year}, rep_period {rp}"
                own = asset.rep_periods_partitions[year][rp]
                inflow_partitions = [f.rep_periods_partitions[year][rp] for f in incoming]
                outflow_partitions = [f.rep_periods_partitions[year][rp] for f in outgoing]
                all_partitions = inflow_partitions + outflow_partitions
                binary_storage = _uses_binary_storage(asset)
                key = (a, year, rp)

                if asset.type == AssetType.Conversion:
                    partitions[IndexTable.Lowest][key] = compute_rp_partition(
                        all_partitions + [own], PartitionStrategy.Lowest, context)
                if asset.type in (AssetType.Hub, AssetType.Consumer):
                    partitions[IndexTable.HighestInOut][key] = _combine(
                        all_partitions, own, PartitionStrategy.Highest, context)
                if asset.type == AssetType.Storage:
                    partitions[IndexTable.HighestIn][key] = _combine(
                        all_partitions if binary_storage else inflow_partitions, own, PartitionStrategy.Highest,
                        context)
                    if not asset.is_seasonal:
                        partitions[IndexTable.StorageLevelIntraRP][key] = list(own)
                    if binary_storage:
                        partitions[IndexTable.IsCharging][key] = _combine(
                            all_partitions, own, PartitionStrategy.Highest, context)
                if asset.type in (AssetType.Producer, AssetType.Storage, AssetType.Conversion):
                    partitions[IndexTable.HighestOut][key] = _combine(
                        all_partitions if binary_storage else outflow_partitions, own, PartitionStrategy.Highest,
                        context)
                if _uses_unit_commitment(asset):
                    partitions[IndexTable.UnitsOn][key] = list(own)
                    partitions[IndexTable.UnitsOnAndOutflows][key] = compute_rp_partition(
                        outflow_partitions + [own], PartitionStrategy.Highest, context)

            timeframe_partition = asset.timeframe_partitions.get(year)
            if timeframe_partition is None:
                continue
            if asset.type == AssetType.Storage and asset.is_seasonal:
                partitions[IndexTable.StorageLevelInterRP][(a, year)] = list(timeframe_partition)
            if asset.max_energy_timeframe_partition.get(year) is not None:
                partitions[IndexTable.MaxEnergyInterRP][(a, year)] = list(timeframe_partition)
            if asset.min_energy_timeframe_partition.get(year) is not None:
                partitions[IndexTable.MinEnergyInterRP][(a, year)] = list(timeframe_partition)

    return partitions


def _with_index(rows: list, columns: list) -> pd.DataFrame:
    """rows are generated in their final order"""
    df = pd.DataFrame(rows, columns=columns)
    df['index'] = range(len(df))
    return df


def _flows_table(graph: EnergyGraph, representative_periods: dict, milestone_years: list[int]) -> pd.DataFrame:
    rows = []
    for flow in sorted(graph.flows(), key=lambda f: f.key):
        for year in milestone_years:
            if not flow.is_active(year):
                continue
            for rp in representative_periods[year]:
                for block in flow.rep_periods_partitions[year][rp]:
                    rows.append((flow.from_asset, flow.to_asset, year, rp, block.start, block.stop - 1))
    return _with_index(rows, ['from_asset', 'to_asset', 'year', 'rep_period', 'time_block_start', 'time_block_end'])


def _rp_view_table(partitions: dict) -> pd.DataFrame:
    rows = [(a, year, rp, block.start, block.stop - 1)
            for (a, year, rp) in sorted(partitions)
            for block in partitions[(a, year, rp)]]
    return _with_index(rows, ['asset', 'year', 'rep_period', 'time_block_start', 'time_block_end'])


def _timeframe_view_table(partitions: dict, timeframe: Timeframe) -> pd.DataFrame:
    mapping = timeframe.map_periods_to_rp
    rows = []
    for (a, year) in sorted(partitions):
        year_mapping = mapping[mapping['year'] == year]
        for block in partitions[(a, year)]:
            in_block = year_mapping[(year_mapping['period'] >= block.start) & (year_mapping['period'] < block.stop)]
            rp_weights = {int(rp): float(w) for rp, w in in_block.groupby('rep_period')['weight'].sum().items()}
            rows.append((a, year, block.start, block.stop - 1, rp_weights))
    return _with_index(rows, ['asset', 'year', 'periods_block_start', 'periods_block_end', 'rp_weights'])


def construct_dataframes(graph: EnergyGraph, representative_periods: dict, constraints_partitions: dict,
                         timeframe: Timeframe, years: list[Year]) -> dict:
    """
    Build one index table per view plus the flows table. Rows are sorted by entity, year,
    representative period (or period) and block start; the 'index' column numbers them 0..n-1.

    :return: {IndexTable: DataFrame}
    :rtype: dict
    """
    milestone_years = [y.id for y in years if y.is_milestone]
    dataframes = {IndexTable.Flows: _flows_table(graph, representative_periods, milestone_years)}
    for table in RP_TABLES:
        dataframes[table] = _rp_view_table(constraints_partitions[table])
    for table in TIMEFRAME_TABLES:
        dataframes[table] = _timeframe_view_table(constraints_partitions[table], timeframe)

    logger.info(f"constructed index tables: "
                f"{', '.join(f'{t.value}={len(df)}' for t, df in dataframes.items())}")

    return dataframes


def _flow_blocks(flows_df: pd.DataFrame) -> tuple[dict, dict]:
    """
    {(asset, year, rep_period): {flow key: [(start, end, index), ...]}} for the incoming and the
    outgoing flows of every asset, blocks in time order.
    """
    incoming, outgoing = {}, {}
    for row in flows_df.to_dict('records'):
        block = (row['time_block_start'], row['time_block_end'], row['index'])
        flow_key = (row['from_asset'], row['to_asset'])
        incoming.setdefault((row['to_asset'], row['year'], row['rep_period']), {}) \
            .setdefault(flow_key, []).append(block)
        outgoing.setdefault((row['from_asset'], row['year'], row['rep_period']), {}) \
            .setdefault(flow_key, []).append(block)
    return incoming, outgoing


def _overlaps(rows: list[tuple[int, int]], blocks: list[tuple[int, int, int]]):
    """
    Yield (row position, flow block, overlap length) for every overlapping pair of a constraint
    block and a flow block. Both lists are sorted by start.
    """
    j = 0
    for pos, (start, end) in enumerate(rows):
        while j < len(blocks) and blocks[j][1] < start:
            j += 1
        k = j
        while k < len(blocks) and blocks[k][0] <= end:
            yield pos, blocks[k], overlap_length((start, end), blocks[k][:2])
            k += 1


def efficiency_factor(graph: EnergyGraph, asset: str, flow_key: tuple[str, str], year: int, incoming: bool) -> float:
    """Inflows into an asset are multiplied by the flow efficiency, outflows are divided by it.
    Hubs and consumers use the flows as they are."""
    if graph.asset(asset).type in (AssetType.Hub, AssetType.Consumer):
        return 1.0
    efficiency = graph.flow(*flow_key).efficiency_at(year)
    return efficiency if incoming else 1.0 / efficiency


def _group_positions(df: pd.DataFrame) -> dict:
    groups = {}
    for pos, key in enumerate(zip(df['asset'], df['year'], df['rep_period'])):
        groups.setdefault(key, []).append(pos)
    return groups


def add_flow_terms(dataframes: dict, graph: EnergyGraph, representative_periods: dict):
    """
    Add the columns 'incoming_terms' and 'outgoing_terms' to the representative period views and
    'min_outgoing_flow_duration' to the highest_out and units_on_and_outflows views.

    In energy mode a flow contributes its overlap with the constraint block times the resolution
    of the representative period; in power mode each overlapping flow contributes once.
    """
    flows_in, flows_out = _flow_blocks(dataframes[IndexTable.Flows])

    for table, (energy_mode, with_efficiency) in FLOW_TERMS_MODES.items():
        df = dataframes[table]
        incoming_terms = [{} for _ in range(len(df))]
        outgoing_terms = [{} for _ in range(len(df))]
        min_duration = [None] * len(df)
        starts, ends = df['time_block_start'].tolist(), df['time_block_end'].tolist()

        for (a, year, rp), positions in _group_positions(df).items():
            resolution = representative_periods[year][rp].resolution
            rows = [(starts[p], ends[p]) for p in positions]
            for is_incoming, flows, terms in ((True, flows_in, incoming_terms), (False, flows_out, outgoing_terms)):
                for flow_key, blocks in flows.get((a, year, rp), {}).items():
                    factor = efficiency_factor(graph, a, flow_key, year, is_incoming) if with_efficiency else 1.0
                    for pos, (start, end, flow_index), overlap in _overlaps(rows, blocks):
                        coefficient = overlap * resolution * factor if energy_mode else factor
                        row_terms = terms[positions[pos]]
                        row_terms[flow_index] = row_terms.get(flow_index, 0.0) + coefficient
                        if not is_incoming:
                            duration = end - start + 1
                            current = min_duration[positions[pos]]
                            min_duration[positions[pos]] = duration if current is None else min(current, duration)

        df['incoming_terms'] = incoming_terms
        df['outgoing_terms'] = outgoing_terms
        if table in (IndexTable.HighestOut, IndexTable.UnitsOnAndOutflows):
            df['min_outgoing_flow_duration'] = [1 if d is None else d for d in min_duration]


def _rp_energy(flows: dict, graph: EnergyGraph, asset: str, year: int, resolution: float, incoming: bool,
               with_efficiency: bool) -> dict:
    """{flow index: energy coefficient} of all flow blocks of one asset in one representative period"""
    energy = {}
    for flow_key, blocks in flows.items():
        factor = efficiency_factor(graph, asset, flow_key, year, incoming) if with_efficiency else 1.0
        for start, end, index in blocks:
            energy[index] = (end - start + 1) * resolution * factor
    return energy


def add_inter_rp_terms(dataframes: dict, graph: EnergyGraph, representative_periods: dict):
    """
    Add 'incoming_terms' and 'outgoing_terms' to the timeframe views. A periods block collects the
    representative period energies of its periods, weighted with the mapping weights ('rp_weights').
    """
    flows_in, flows_out = _flow_blocks(dataframes[IndexTable.Flows])

    for table, with_efficiency in INTER_RP_TERMS_EFFICIENCY.items():
        df = dataframes[table]
        incoming_terms, outgoing_terms = [], []
        for row in df.to_dict('records'):
            a, year = row['asset'], row['year']
            row_in, row_out = {}, {}
            for rp, weight in row['rp_weights'].items():
                resolution = representative_periods[year][rp].resolution
                for flows, incoming, terms in ((flows_in, True, row_in), (flows_out, False, row_out)):
                    energy = _rp_energy(flows.get((a, year, rp), {}), graph, a, year, resolution, incoming,
                                        with_efficiency)
                    for index, coefficient in energy.items():
                        terms[index] = terms.get(index, 0.0) + weight * coefficient
            incoming_terms.append(row_in)
            outgoing_terms.append(row_out)
        df['incoming_terms'] = incoming_terms
        df['outgoing_terms'] = outgoing_terms

"""
capacity_expansion/model/components.py

Core data classes of the capacity expansion model: years, representative periods, the timeframe,
investment groups and the energy graph with its asset (node) and flow (edge) records.

Purpose:

- Hold the input data of assets and flows in typed records, with parameters that vary per
  milestone year, per commission year or per (milestone year, commission year) pair stored in
  explicit nested dictionaries.
- Provide the directed energy graph with an explicit asset name <-> node index mapping and an
  ordered edge list.

Main responsibilities:

- Year / RepresentativePeriod / Timeframe / Group: small value objects.
- AssetData / FlowData:
    - static technical and economic attributes,
    - year dictionaries, validated against the known years and the technical lifetime,
    - construction phase: partitions and profiles are filled while building the graph and can
      only be read after `freeze()`,
    - solution phase: solution values are written once after an optimal solve.
- EnergyGraph: add assets and flows, reject duplicates and dangling flows, neighbourhood queries.

Year dictionary layouts:

- milestone attributes:           {milestone_year: value}
- commission attributes:          {commission_year: value}
- milestone/commission attributes {milestone_year: {commission_year: value}}

Missing values are stored as None.
"""

import pandas as pd

from capacity_expansion.const import (AssetType, InvestmentMethod, UnitCommitmentMethod, BinaryStorageMethod,
                                      DEFAULT_EFFICIENCY)
from capacity_expansion.exceptions import (InputValidationError, StructureError, ConstructionPhaseError,
                                           SolutionNotAvailableError)


class Year:
    def __init__(self, id: int, length: int, is_milestone: bool):
        self.id = int(id)
        self.length = int(length)
        self.is_milestone = bool(is_milestone)

    def __repr__(self):
        return f"Year({self.id}, length={self.length}, is_milestone={self.is_milestone})"


class RepresentativePeriod:
    """
    A representative period of a year, i.e. a short sequence of timesteps that stands in for a
    weighted share of the year.

    :ivar weight: How many times the period is repeated in the year (sum of the mapping weights).
    :ivar timesteps: range of the timesteps 1..N
    :ivar resolution: Duration of one timestep, e.g. in hours.
    """

    def __init__(self, weight: float, num_timesteps: int, resolution: float = 1.0):
        if int(num_timesteps) <= 0:
            raise InputValidationError(f"A representative period needs at least one timestep, got {num_timesteps}")
        self.weight = float(weight)
        self.timesteps = range(1, int(num_timesteps) + 1)
        self.resolution = float(resolution)

    @property
    def num_timesteps(self) -> int:
        return len(self.timesteps)

    def duration(self, block_start: int, block_end: int) -> float:
        return (block_end - block_start + 1) * self.resolution

    def __repr__(self):
        return (f"RepresentativePeriod(weight={self.weight}, num_timesteps={self.num_timesteps}, "
                f"resolution={self.resolution})")


class Timeframe:
    """
    The full horizon of a year expressed in periods, each mapped to one or more representative
    periods with a weight.

    :ivar num_periods: Number of periods in the timeframe.
    :ivar map_periods_to_rp: DataFrame with the columns year, period, rep_period and weight.
    """

    def __init__(self, num_periods: int, map_periods_to_rp: pd.DataFrame):
        self.num_periods = int(num_periods)
        self.map_periods_to_rp = map_periods_to_rp

    def __repr__(self):
        return f"Timeframe(num_periods={self.num_periods})"


class Group:
    def __init__(self, name: str, year: int, invest_method: bool = False,
                 min_investment_limit: float = None, max_investment_limit: float = None):
        self.name = name
        self.year = int(year)
        self.invest_method = bool(invest_method)
        self.min_investment_limit = min_investment_limit
        self.max_investment_limit = max_investment_limit

    def __repr__(self):
        return f"Group({self.name}, year={self.year})"


class GraphElementData:
    """
    Base class for asset and flow records. Handles the year dictionaries and the two phases a
    record goes through after its creation:

    - construction: partitions and profiles are added, reading them raises ConstructionPhaseError;
    - frozen: partitions and profiles can be read but no longer changed.

    Solution values are written exactly once with `set_solution` and raise
    SolutionNotAvailableError when read before.
    """

    milestone_attributes: tuple = ()
    commission_attributes: tuple = ()
    both_attributes: tuple = ()

    def __init__(self, technical_lifetime: int, **year_data):
        self.technical_lifetime = int(technical_lifetime)
        for attr in (*self.milestone_attributes, *self.commission_attributes, *self.both_attributes):
            setattr(self, attr, dict(year_data.pop(attr, None) or {}))
        if year_data:
            raise TypeError(f"Unknown year attributes for {self.label}: {sorted(year_data)}")

        self._frozen = False
        self._rep_periods_partitions = {}
        self._rep_periods_profiles = {}
        self._solution = None

    @property
    def label(self) -> str:
        raise NotImplementedError

    # year dictionaries

    def validate_years(self, milestone_years: list[int]):
        """
        Check the key domains of the year dictionaries: milestone keys must be milestone years and
        commission years must not be later than the milestone year nor older than the technical
        lifetime allows.
        """
        milestone_years = set(milestone_years)
        for attr in self.milestone_attributes:
            unknown = set(getattr(self, attr)) - milestone_years
            if unknown:
                raise InputValidationError(f"{self.label}: '{attr}' given for non-milestone years {sorted(unknown)}")
        for attr in self.both_attributes:
            for milestone_year, per_commission in getattr(self, attr).items():
                if milestone_year not in milestone_years:
                    raise InputValidationError(
                        f"{self.label}: '{attr}' given for non-milestone year {milestone_year}")
                for commission_year in per_commission:
                    if commission_year > milestone_year:
                        raise InputValidationError(
                            f"{self.label}: commission year {commission_year} is after milestone year "
                            f"{milestone_year} in '{attr}'")
                    if milestone_year - commission_year >= self.technical_lifetime:
                        raise InputValidationError(
                            f"{self.label}: commission year {commission_year} is outside the technical lifetime "
                            f"({self.technical_lifetime} years) at milestone year {milestone_year} in '{attr}'")

    def is_active(self, year: int) -> bool:
        return any(self.active.get(year, {}).values())

    def is_decommissionable(self, year: int) -> bool:
        return any(self.decommissionable.get(year, {}).values())

    def is_investable(self, year: int) -> bool:
        return bool(self.investable.get(year, False))

    def starting_year(self, year: int) -> int:
        """first commission year whose units are still within their lifetime at `year`"""
        return year - self.technical_lifetime + 1

    # construction phase

    def _check_constructing(self):
        if self._frozen:
            raise ConstructionPhaseError(f"{self.label} is frozen, partitions and profiles cannot be changed")

    def _check_frozen(self):
        if not self._frozen:
            raise ConstructionPhaseError(f"{self.label} is still under construction, call freeze() first")

    def freeze(self):
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def set_rep_period_partition(self, year: int, rep_period: int, partition: list[range]):
        self._check_constructing()
        self._rep_periods_partitions.setdefault(year, {})[rep_period] = list(partition)

    @property
    def rep_periods_partitions(self) -> dict:
        self._check_frozen()
        return self._rep_periods_partitions

    @property
    def rep_periods_profiles(self) -> dict:
        self._check_frozen()
        return self._rep_periods_profiles

    # solution phase

    def set_solution(self, **values):
        if self._solution is not None:
            raise RuntimeError(f"Solution of {self.label} has already been written")
        self._solution = values

    @property
    def solution(self) -> dict:
        if self._solution is None:
            raise SolutionNotAvailableError(f"No solution available for {self.label}, the problem has not been solved")
        return self._solution


class AssetData(GraphElementData):
    """
    Record of an asset (graph node).

    :param name: Asset identifier.
    :param type: One of producer, consumer, storage, conversion, hub.
    :param group: Name of the investment group, if any.
    :param capacity: Capacity of one unit.
    :param min_operating_point: Minimum operating point as share of the capacity.
    :param investment_method: 'simple', 'compact' or 'none'.
    :param investment_integer: Investments are integer numbers of units.
    :param technical_lifetime: Technical lifetime in years.
    :param economic_lifetime: Economic lifetime in years (annualisation of investments).
    :param discount_rate: Technology specific discount rate.
    :param consumer_balance_sense: If set, the consumer balance is '>=' instead of '=='.
    :param capacity_storage_energy: Energy capacity of one storage energy unit.
    :param is_seasonal: Storage balanced over the timeframe instead of within representative periods.
    :param use_binary_storage_method: 'binary', 'relaxed_binary' or None.
    :param unit_commitment: Asset uses unit commitment.
    :param unit_commitment_method: 'basic' or None.
    :param unit_commitment_integer: Units on are integer.
    :param ramping: Asset uses ramping constraints.
    :param storage_method_energy: Storage energy capacity is invested separately.
    :param energy_to_power_ratio: Fixed energy to power ratio otherwise.
    :param investment_integer_storage_energy: Energy investments are integer.
    :param max_ramp_up: Maximum ramp up per unit of time as share of the capacity.
    :param max_ramp_down: Maximum ramp down per unit of time as share of the capacity.
    :param year_data: year dictionaries, see module docstring.
    """

    milestone_attributes = ('investable', 'peak_demand', 'storage_inflows', 'initial_storage_level',
                            'min_energy_timeframe_partition', 'max_energy_timeframe_partition', 'units_on_cost')
    commission_attributes = ('fixed_cost', 'investment_cost', 'investment_limit', 'fixed_cost_storage_energy',
                             'investment_cost_storage_energy', 'investment_limit_storage_energy')
    both_attributes = ('active', 'decommissionable', 'initial_units', 'initial_storage_units')

    def __init__(self, name: str, type: str, group: str = None, capacity: float = 0.0,
                 min_operating_point: float = 0.0, investment_method: str = InvestmentMethod.NoInvestment,
                 investment_integer: bool = False, technical_lifetime: int = 1, economic_lifetime: int = 1,
                 discount_rate: float = 0.0, consumer_balance_sense=None, capacity_storage_energy: float = 0.0,
                 is_seasonal: bool = False, use_binary_storage_method: str = None, unit_commitment: bool = False,
                 unit_commitment_method: str = None, unit_commitment_integer: bool = False, ramping: bool = False,
                 storage_method_energy: bool = False, energy_to_power_ratio: float = 0.0,
                 investment_integer_storage_energy: bool = False, max_ramp_up: float = None,
                 max_ramp_down: float = None, **year_data):

        self.name = name
        try:
            self.type = AssetType(type)
            self.investment_method = InvestmentMethod(investment_method)
            self.use_binary_storage_method = (
                None if use_binary_storage_method is None else BinaryStorageMethod(use_binary_storage_method))
            self.unit_commitment_method = (
                None if unit_commitment_method is None else UnitCommitmentMethod(unit_commitment_method))
        except ValueError as e:
            raise InputValidationError(f"Asset '{name}': {e}")

        self.group = group
        self.capacity = float(capacity)
        self.min_operating_point = float(min_operating_point)
        self.investment_integer = bool(investment_integer)
        self.economic_lifetime = int(economic_lifetime)
        self.discount_rate = float(discount_rate)
        self.consumer_balance_sense = consumer_balance_sense
        self.capacity_storage_energy = float(capacity_storage_energy)
        self.is_seasonal = bool(is_seasonal)
        self.unit_commitment = bool(unit_commitment)
        self.unit_commitment_integer = bool(unit_commitment_integer)
        self.ramping = bool(ramping)
        self.storage_method_energy = bool(storage_method_energy)
        self.energy_to_power_ratio = float(energy_to_power_ratio)
        self.investment_integer_storage_energy = bool(investment_integer_storage_energy)
        self.max_ramp_up = max_ramp_up
        self.max_ramp_down = max_ramp_down

        super().__init__(technical_lifetime, **year_data)
        self._timeframe_partitions = {}
        self._timeframe_profiles = {}

    @property
    def label(self) -> str:
        return f"asset '{self.name}'"

    def initial_units_at(self, year: int) -> float:
        return sum(v for v in self.initial_units.get(year, {}).values() if v is not None)

    def initial_storage_units_at(self, year: int) -> float:
        return sum(v for v in self.initial_storage_units.get(year, {}).values() if v is not None)

    def has_energy_limits(self) -> bool:
        return any(v is not None for v in self.max_energy_timeframe_partition.values()) or \
            any(v is not None for v in self.min_energy_timeframe_partition.values())

    def set_timeframe_partition(self, year: int, partition: list[range]):
        self._check_constructing()
        self._timeframe_partitions[year] = list(partition)

    def add_rep_period_profile(self, year: int, commission_year: int, profile_type: str, rep_period: int, values):
        self._check_constructing()
        profiles = self._rep_periods_profiles.setdefault(year, {}).setdefault(commission_year, {})
        profiles[(profile_type, rep_period)] = values

    def add_timeframe_profile(self, year: int, commission_year: int, profile_type: str, values):
        self._check_constructing()
        self._timeframe_profiles.setdefault(year, {}).setdefault(commission_year, {})[profile_type] = values

    @property
    def timeframe_partitions(self) -> dict:
        self._check_frozen()
        return self._timeframe_partitions

    @property
    def timeframe_profiles(self) -> dict:
        self._check_frozen()
        return self._timeframe_profiles

    def profiles_at(self, year: int, commission_year: int = None) -> dict:
        """rep-period profiles {(profile_type, rep_period): values} of a year and commission year"""
        if commission_year is None:
            commission_year = year
        return self.rep_periods_profiles.get(year, {}).get(commission_year, {})

    def timeframe_profiles_at(self, year: int, commission_year: int = None) -> dict:
        if commission_year is None:
            commission_year = year
        return self.timeframe_profiles.get(year, {}).get(commission_year, {})

    def __repr__(self):
        return f"AssetData({self.name}, type={self.type.value}, capacity={self.capacity})"


class FlowData(GraphElementData):
    """
    Record of a flow (graph edge) from asset `from_asset` to asset `to_asset`.

    :param from_asset: Name of the source asset.
    :param to_asset: Name of the target asset.
    :param carrier: Energy carrier.
    :param is_transport: Transport flows can flow in both directions and have their own capacity.
    :param capacity: Capacity of one transport unit.
    :param technical_lifetime: Technical lifetime in years.
    :param economic_lifetime: Economic lifetime in years.
    :param discount_rate: Technology specific discount rate.
    :param investment_integer: Investments are integer numbers of units.
    :param year_data: year dictionaries, see module docstring.
    """

    milestone_attributes = ('investable', 'variable_cost')
    commission_attributes = ('fixed_cost', 'investment_cost', 'efficiency', 'investment_limit')
    both_attributes = ('active', 'decommissionable', 'initial_export_units', 'initial_import_units')

    def __init__(self, from_asset: str, to_asset: str, carrier: str = None, is_transport: bool = False,
                 capacity: float = 0.0, technical_lifetime: int = 1, economic_lifetime: int = 1,
                 discount_rate: float = 0.0, investment_integer: bool = False, **year_data):
        self.from_asset = from_asset
        self.to_asset = to_asset
        self.carrier = carrier
        self.is_transport = bool(is_transport)
        self.capacity = float(capacity)
        self.economic_lifetime = int(economic_lifetime)
        self.discount_rate = float(discount_rate)
        self.investment_integer = bool(investment_integer)
        super().__init__(technical_lifetime, **year_data)

    @property
    def key(self) -> tuple[str, str]:
        return self.from_asset, self.to_asset

    @property
    def label(self) -> str:
        return f"flow ('{self.from_asset}', '{self.to_asset}')"

    def efficiency_at(self, year: int) -> float:
        efficiency = self.efficiency.get(year)
        return DEFAULT_EFFICIENCY if efficiency is None else efficiency

    def initial_export_units_at(self, year: int) -> float:
        return sum(v for v in self.initial_export_units.get(year, {}).values() if v is not None)

    def initial_import_units_at(self, year: int) -> float:
        return sum(v for v in self.initial_import_units.get(year, {}).values() if v is not None)

    def add_rep_period_profile(self, year: int, profile_type: str, rep_period: int, values):
        self._check_constructing()
        self._rep_periods_profiles.setdefault(year, {})[(profile_type, rep_period)] = values

    def profiles_at(self, year: int) -> dict:
        return self.rep_periods_profiles.get(year, {})

    def __repr__(self):
        return f"FlowData({self.from_asset} -> {self.to_asset}, transport={self.is_transport})"


class EnergyGraph:
    """
    Directed graph of the energy system: assets are nodes, flows are edges.

    Nodes are numbered in insertion order; the name <-> index mapping is kept explicitly and
    asset names must be unique. Edges are kept as an ordered list of (from, to) asset names,
    with at most one flow per ordered pair.
    """

    def __init__(self):
        self._name_to_index: dict[str, int] = {}
        self._assets: list[AssetData] = []
        self._flows: dict[tuple[str, str], FlowData] = {}
        self._in_neighbors: dict[str, list[str]] = {}
        self._out_neighbors: dict[str, list[str]] = {}

    def add_asset(self, asset: AssetData) -> int:
        if asset.name in self._name_to_index:
            raise StructureError(f"Duplicate asset name '{asset.name}'")
        index = len(self._assets)
        self._name_to_index[asset.name] = index
        self._assets.append(asset)
        self._in_neighbors[asset.name] = []
        self._out_neighbors[asset.name] = []
        return index

    def add_flow(self, flow: FlowData):
        for name in flow.key:
            if name not in self._name_to_index:
                raise StructureError(f"{flow.label} references the unknown asset '{name}'")
        if flow.key in self._flows:
            raise StructureError(f"Duplicate {flow.label}")
        self._flows[flow.key] = flow
        self._out_neighbors[flow.from_asset].append(flow.to_asset)
        self._in_neighbors[flow.to_asset].append(flow.from_asset)

    def index_of(self, name: str) -> int:
        try:
            return self._name_to_index[name]
        except KeyError:
            raise StructureError(f"Unknown asset '{name}'")

    def name_of(self, index: int) -> str:
        return self._assets[index].name

    def asset(self, name: str) -> AssetData:
        return self._assets[self.index_of(name)]

    def flow(self, from_asset: str, to_asset: str) -> FlowData:
        try:
            return self._flows[(from_asset, to_asset)]
        except KeyError:
            raise StructureError(f"Unknown flow ('{from_asset}', '{to_asset}')")

    def __getitem__(self, key):
        if isinstance(key, tuple):
            return self.flow(*key)
        return self.asset(key)

    def __contains__(self, key):
        if isinstance(key, tuple):
            return key in self._flows
        return key in self._name_to_index

    @property
    def asset_names(self) -> list[str]:
        return [a.name for a in self._assets]

    @property
    def flow_keys(self) -> list[tuple[str, str]]:
        return list(self._flows)

    @property
    def edges(self) -> list[tuple[int, int]]:
        """edge list in node indices"""
        return [(self._name_to_index[u], self._name_to_index[v]) for u, v in self._flows]

    def assets(self):
        return iter(self._assets)

    def flows(self):
        return iter(self._flows.values())

    @property
    def num_assets(self) -> int:
        return len(self._assets)

    @property
    def num_flows(self) -> int:
        return len(self._flows)

    def in_neighbors(self, name: str) -> list[str]:
        return list(self._in_neighbors[name])

    def out_neighbors(self, name: str) -> list[str]:
        return list(self._out_neighbors[name])

    def incoming_flows(self, name: str, year: int = None) -> list[FlowData]:
        flows = [self._flows[(u, name)] for u in self._in_neighbors[name]]
        if year is not None:
            flows = [f for f in flows if f.is_active(year)]
        return flows

    def outgoing_flows(self, name: str, year: int = None) -> list[FlowData]:
        flows = [self._flows[(name, v)] for v in self._out_neighbors[name]]
        if year is not None:
            flows = [f for f in flows if f.is_active(year)]
        return flows

    def freeze(self):
        for asset in self._assets:
            asset.freeze()
        for flow in self._flows.values():
            flow.freeze()

    def __repr__(self):
        return f"EnergyGraph({self.num_assets} assets, {self.num_flows} flows)"

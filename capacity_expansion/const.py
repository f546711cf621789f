"""
capacity_expansion/const.py

This module centralizes project-wide constants, enumerations and default values used across the
capacity expansion model.

Contents and responsibilities:

- Enumerations:
    - Asset types, partition specifications and refinement strategies, investment and unit
      commitment methods, storage charging methods and profile types.
    - Names of the input tables and of the aligned index tables built from them.
- Input table schemas:
    - Required (key) columns of every input table and the default values used to fill optional
      columns that are missing from the input.
    - Tables that may be absent from the input and are then treated as empty.
- Modeling defaults:
    - Solver backend, social discount rate and year, efficiency and profile defaults.

Notes:

- Values here are intended as project defaults and may be overridden per run (e.g. the discount
  rate via `ModelParameters`).
"""

from enum import Enum
import numpy as np


class AssetType(str, Enum):
    Producer = 'producer'
    Consumer = 'consumer'
    Storage = 'storage'
    Conversion = 'conversion'
    Hub = 'hub'


class PartitionSpecification(str, Enum):
    Uniform = 'uniform'
    Explicit = 'explicit'
    Math = 'math'


class PartitionStrategy(str, Enum):
    Highest = 'highest'
    Lowest = 'lowest'


class InvestmentMethod(str, Enum):
    Simple = 'simple'
    Compact = 'compact'
    NoInvestment = 'none'


class UnitCommitmentMethod(str, Enum):
    Basic = 'basic'


class BinaryStorageMethod(str, Enum):
    Binary = 'binary'
    RelaxedBinary = 'relaxed_binary'


class ProfileType(str, Enum):
    Availability = 'availability'
    Demand = 'demand'
    Inflows = 'inflows'
    MaxStorageLevel = 'max-storage-level'
    MinStorageLevel = 'min-storage-level'
    MaxEnergy = 'max-energy'
    MinEnergy = 'min-energy'


class InputTable(str, Enum):
    YearData = 'year_data'
    RepPeriodsData = 'rep_periods_data'
    RepPeriodsMapping = 'rep_periods_mapping'
    Asset = 'asset'
    AssetMilestone = 'asset_milestone'
    AssetCommission = 'asset_commission'
    AssetBoth = 'asset_both'
    Flow = 'flow'
    FlowMilestone = 'flow_milestone'
    FlowCommission = 'flow_commission'
    FlowBoth = 'flow_both'
    AssetsProfiles = 'assets_profiles'
    FlowsProfiles = 'flows_profiles'
    ProfilesRepPeriods = 'profiles_rep_periods'
    AssetsRepPeriodsPartitions = 'assets_rep_periods_partitions'
    FlowsRepPeriodsPartitions = 'flows_rep_periods_partitions'
    AssetsTimeframePartitions = 'assets_timeframe_partitions'
    AssetsTimeframeProfiles = 'assets_timeframe_profiles'
    ProfilesTimeframe = 'profiles_timeframe'
    GroupsData = 'groups_data'


class IndexTable(str, Enum):
    """Aligned index tables, one per time resolution view plus the timeframe tables"""
    Flows = 'flows'
    Lowest = 'lowest'
    HighestInOut = 'highest_in_out'
    HighestIn = 'highest_in'
    HighestOut = 'highest_out'
    StorageLevelIntraRP = 'storage_level_intra_rp'
    UnitsOn = 'units_on'
    UnitsOnAndOutflows = 'units_on_and_outflows'
    IsCharging = 'is_charging'
    StorageLevelInterRP = 'storage_level_inter_rp'
    MaxEnergyInterRP = 'max_energy_inter_rp'
    MinEnergyInterRP = 'min_energy_inter_rp'


OPTIONAL_TABLES = [
    InputTable.AssetsRepPeriodsPartitions,
    InputTable.AssetsTimeframePartitions,
    InputTable.AssetsTimeframeProfiles,
    InputTable.FlowsRepPeriodsPartitions,
    InputTable.GroupsData,
    InputTable.ProfilesTimeframe,
]

# format: {table: {'required': [columns], 'defaults': {column: value}}}
TABLE_SCHEMAS = {
    InputTable.YearData: {
        'required': ['year', 'length', 'is_milestone'],
        'defaults': {},
    },
    InputTable.RepPeriodsData: {
        'required': ['year', 'rep_period', 'num_timesteps'],
        'defaults': {'resolution': 1.0},
    },
    InputTable.RepPeriodsMapping: {
        'required': ['year', 'period', 'rep_period'],
        'defaults': {'weight': 1.0},
    },
    InputTable.Asset: {
        'required': ['asset', 'type'],
        'defaults': {
            'group': None,
            'capacity': 0.0,
            'min_operating_point': 0.0,
            'investment_method': InvestmentMethod.NoInvestment.value,
            'investment_integer': False,
            'technical_lifetime': 1,
            'economic_lifetime': 1,
            'discount_rate': 0.0,
            'consumer_balance_sense': None,
            'capacity_storage_energy': 0.0,
            'is_seasonal': False,
            'use_binary_storage_method': None,
            'unit_commitment': False,
            'unit_commitment_method': None,
            'unit_commitment_integer': False,
            'ramping': False,
            'storage_method_energy': False,
            'energy_to_power_ratio': 0.0,
            'investment_integer_storage_energy': False,
            'max_ramp_up': np.nan,
            'max_ramp_down': np.nan,
        },
    },
    InputTable.AssetMilestone: {
        'required': ['asset', 'milestone_year'],
        'defaults': {
            'investable': False,
            'peak_demand': 0.0,
            'storage_inflows': 0.0,
            'initial_storage_level': np.nan,
            'min_energy_timeframe_partition': np.nan,
            'max_energy_timeframe_partition': np.nan,
            'units_on_cost': np.nan,
        },
    },
    InputTable.AssetCommission: {
        'required': ['asset', 'commission_year'],
        'defaults': {
            'fixed_cost': 0.0,
            'investment_cost': 0.0,
            'investment_limit': np.nan,
            'fixed_cost_storage_energy': 0.0,
            'investment_cost_storage_energy': 0.0,
            'investment_limit_storage_energy': np.nan,
        },
    },
    InputTable.AssetBoth: {
        'required': ['asset', 'milestone_year', 'commission_year'],
        'defaults': {
            'active': True,
            'decommissionable': False,
            'initial_units': 0.0,
            'initial_storage_units': 0.0,
        },
    },
    InputTable.Flow: {
        'required': ['from_asset', 'to_asset'],
        'defaults': {
            'carrier': None,
            'is_transport': False,
            'capacity': 0.0,
            'technical_lifetime': 1,
            'economic_lifetime': 1,
            'discount_rate': 0.0,
            'investment_integer': False,
        },
    },
    InputTable.FlowMilestone: {
        'required': ['from_asset', 'to_asset', 'milestone_year'],
        'defaults': {'investable': False, 'variable_cost': 0.0},
    },
    InputTable.FlowCommission: {
        'required': ['from_asset', 'to_asset', 'commission_year'],
        'defaults': {'fixed_cost': 0.0, 'investment_cost': 0.0, 'efficiency': 1.0, 'investment_limit': np.nan},
    },
    InputTable.FlowBoth: {
        'required': ['from_asset', 'to_asset', 'milestone_year', 'commission_year'],
        'defaults': {
            'active': True,
            'decommissionable': False,
            'initial_export_units': 0.0,
            'initial_import_units': 0.0,
        },
    },
    InputTable.AssetsProfiles: {
        'required': ['asset', 'commission_year', 'profile_type', 'profile_name'],
        'defaults': {},
    },
    InputTable.FlowsProfiles: {
        'required': ['from_asset', 'to_asset', 'profile_type', 'profile_name'],
        'defaults': {},
    },
    InputTable.ProfilesRepPeriods: {
        'required': ['profile_name', 'year', 'rep_period', 'timestep', 'value'],
        'defaults': {},
    },
    InputTable.AssetsRepPeriodsPartitions: {
        'required': ['asset', 'year', 'rep_period', 'specification', 'partition'],
        'defaults': {},
    },
    InputTable.FlowsRepPeriodsPartitions: {
        'required': ['from_asset', 'to_asset', 'year', 'rep_period', 'specification', 'partition'],
        'defaults': {},
    },
    InputTable.AssetsTimeframePartitions: {
        'required': ['asset', 'specification', 'partition'],
        'defaults': {},
    },
    InputTable.AssetsTimeframeProfiles: {
        'required': ['asset', 'commission_year', 'profile_type', 'profile_name'],
        'defaults': {},
    },
    InputTable.ProfilesTimeframe: {
        'required': ['profile_name', 'year', 'period', 'value'],
        'defaults': {},
    },
    InputTable.GroupsData: {
        'required': ['name', 'year'],
        'defaults': {'invest_method': False, 'min_investment_limit': np.nan, 'max_investment_limit': np.nan},
    },
}

# SOLVER
DEFAULT_SOLVER = 'appsi_highs'
LP_FILE_NAME = 'model.lp'

# ECONOMICS
# social discount rate used to discount costs to the discount year
DISCOUNT_RATE = 0.0
# None means the first milestone year
DISCOUNT_YEAR = None

DEFAULT_EFFICIENCY = 1.0

"""
capacity_expansion/model/index_sets.py

Index sets of the optimisation model, computed once from the frozen graph and the years and passed
to the model builder as one read-only value.

Naming follows the usual notation of capacity expansion models:

- Y: milestone years, V_all: all years including commission-only years
- A, F: assets and flows
- Ac, Ap, As, Ah, Acv: consumers, producers, storage, hubs and conversion assets
- Ft: transport flows
- Ai[y]: assets with investments in milestone year y
- Ase[y]: storage assets with a separate energy investment, active in y
- Asb[y]: storage assets using the binary charging method, active in y
- Fi[y]: flows with investments in milestone year y
- Auc, Auc_basic: assets with unit commitment (with the basic method)
- Ar: assets with ramping constraints
- A_simple, A_compact: assets using the simple / compact investment method
- decommission_set_simple: (asset, year)
- decommission_set_compact: (asset, year, commission year)
- accumulated_set_compact: (asset, year, commission year)
- decommissionable_flows: ((from_asset, to_asset), year)
"""

from capacity_expansion.const import AssetType, InvestmentMethod, UnitCommitmentMethod, BinaryStorageMethod
from capacity_expansion.model.components import EnergyGraph, Year


class IndexSets:
    """
    Read-only collection of the index sets. Attributes are assigned once in the constructor.
    """

    def __init__(self, **sets):
        for name, value in sets.items():
            object.__setattr__(self, name, value)

    def __setattr__(self, name, value):
        raise AttributeError(f"IndexSets are read-only, cannot set '{name}'")

    def __repr__(self):
        return f"IndexSets(Y={self.Y}, A={len(self.A)} assets, F={len(self.F)} flows)"


def _all_years(graph: EnergyGraph, years: list[Year]) -> list[int]:
    all_years = {y.id for y in years}
    for element in (*graph.assets(), *graph.flows()):
        for attr in element.commission_attributes:
            all_years.update(getattr(element, attr))
        for attr in element.both_attributes:
            for per_commission in getattr(element, attr).values():
                all_years.update(per_commission)
    return sorted(all_years)


def create_sets(graph: EnergyGraph, years: list[Year]) -> IndexSets:
    """
    Compute all index sets.

    :param graph: Frozen energy graph.
    :type graph: EnergyGraph
    :param years: All years of the year table.
    :type years: list[Year]
    :return: The index sets.
    :rtype: IndexSets
    """
    Y = sorted(y.id for y in years if y.is_milestone)
    V_all = _all_years(graph, years)

    assets = sorted(graph.assets(), key=lambda a: a.name)
    flows = sorted(graph.flows(), key=lambda f: f.key)

    def of_type(asset_type):
        return tuple(a.name for a in assets if a.type == asset_type)

    A_simple = tuple(a.name for a in assets if a.investment_method == InvestmentMethod.Simple)
    A_compact = tuple(a.name for a in assets if a.investment_method == InvestmentMethod.Compact)

    Ai = {y: tuple(a.name for a in assets
                   if a.investment_method != InvestmentMethod.NoInvestment and a.is_investable(y) and a.is_active(y))
          for y in Y}
    Ase = {y: tuple(a.name for a in assets
                    if a.type == AssetType.Storage and a.storage_method_energy and a.is_active(y))
           for y in Y}
    Asb = {y: tuple(a.name for a in assets
                    if a.type == AssetType.Storage and a.use_binary_storage_method is not None and a.is_active(y))
           for y in Y}
    Fi = {y: tuple(f.key for f in flows if f.is_investable(y) and f.is_active(y)) for y in Y}

    Auc = tuple(a.name for a in assets
                if a.unit_commitment and a.type in (AssetType.Producer, AssetType.Conversion))
    Auc_basic = tuple(a for a in Auc if graph.asset(a).unit_commitment_method == UnitCommitmentMethod.Basic)
    Ar = tuple(a.name for a in assets if a.ramping)

    decommission_set_simple = tuple(
        (a.name, y) for a in assets if a.name in A_simple for y in Y if a.is_decommissionable(y))
    decommission_set_compact = tuple(
        (a.name, y, v) for a in assets if a.name in A_compact for y in Y for v in V_all
        if v < y and a.active.get(y, {}).get(v) and a.decommissionable.get(y, {}).get(v))
    accumulated_set_compact = tuple(
        (a.name, y, v) for a in assets if a.name in A_compact for y in Y for v in V_all
        if a.starting_year(y) <= v <= y and (a.active.get(y, {}).get(v) or (v == y and a.name in Ai[y])))
    decommissionable_flows = tuple(
        (f.key, y) for f in flows if f.is_transport for y in Y if f.is_decommissionable(y))

    return IndexSets(
        Y=tuple(Y),
        V_all=tuple(V_all),
        A=tuple(a.name for a in assets),
        F=tuple(f.key for f in flows),
        Ac=of_type(AssetType.Consumer),
        Ap=of_type(AssetType.Producer),
        As=of_type(AssetType.Storage),
        Ah=of_type(AssetType.Hub),
        Acv=of_type(AssetType.Conversion),
        Ft=tuple(f.key for f in flows if f.is_transport),
        Ai=Ai,
        Ase=Ase,
        Asb=Asb,
        Fi=Fi,
        Auc=Auc,
        Auc_basic=Auc_basic,
        Ar=Ar,
        A_simple=A_simple,
        A_compact=A_compact,
        decommission_set_simple=decommission_set_simple,
        decommission_set_compact=decommission_set_compact,
        accumulated_set_compact=accumulated_set_compact,
        decommissionable_flows=decommissionable_flows,
    )

"""Object-level decision tools.

Identification, isolation and muon-quality tools are modelled as opaque
predicates: anything with a ``name`` and an ``accept(obj) -> bool`` can be
injected into a selector.  The defaults below read per-object fields in
the spirit of NanoAOD ID columns (``cutBased``-style integer levels,
boolean flags, isolation sums).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

import numpy as np

from selcoffea.errors import ConfigurationError
from selcoffea.selection_config import (
    CUT_BASED_OPERATING_POINTS,
    LH_OPERATING_POINTS,
    MUON_QUALITIES,
)


@runtime_checkable
class AcceptTool(Protocol):
    name: str

    def accept(self, obj) -> bool:
        ...


class LevelTool:
    """Accept objects whose integer ID level attribute reaches ``level``."""

    def __init__(self, name, field, level):
        self.name = name
        self.field = field
        self.level = int(level)

    def accept(self, obj) -> bool:
        value = obj.attributes.get(self.field)
        return value is not None and int(value) >= self.level

    def __repr__(self):
        return f"LevelTool({self.name!r}, {self.field!r} >= {self.level})"


class FlagTool:
    """Accept objects whose boolean attribute ``field`` is set."""

    def __init__(self, name, field):
        self.name = name
        self.field = field

    def accept(self, obj) -> bool:
        return bool(obj.attributes.get(self.field, False))


class RatioIsolationTool:
    """Relative isolation: both ``track/pt`` and ``calo/pt`` must lie in (0, cut).

    If either isolation variable is missing on the object the tool accepts
    it, so that objects without isolation information are not cut.
    """

    def __init__(self, name, track_type, track_cut, calo_type, calo_cut):
        self.name = name
        self.track_type = track_type
        self.track_cut = float(track_cut)
        self.calo_type = calo_type
        self.calo_cut = float(calo_cut)

    def accept(self, obj) -> bool:
        track_iso = obj.attributes.get(self.track_type)
        calo_iso = obj.attributes.get(self.calo_type)
        if track_iso is None or calo_iso is None or obj.pt <= 0:
            return True
        track_ratio = float(track_iso) / obj.pt
        calo_ratio = float(calo_iso) / obj.pt
        is_track_iso = 0.0 < track_ratio < self.track_cut
        is_calo_iso = 0.0 < calo_ratio < self.calo_cut
        return is_track_iso and is_calo_iso


class MuonQualityTool:
    """Muon selection: quality at least as tight as requested and, if ``max_eta`` is set, |eta| within range.

    Quality follows the enum ordering Tight=0, Medium=1, Loose=2, VeryLoose=3.
    """

    def __init__(self, quality="Medium", max_eta=None, field="quality"):
        if quality not in MUON_QUALITIES:
            raise ConfigurationError(f"Unknown muon quality requested '{quality}'.")
        self.name = f"MuonSelection_{quality}"
        self.required = MUON_QUALITIES.index(quality)
        self.max_eta = None if max_eta is None else float(max_eta)
        self.field = field

    def accept(self, obj) -> bool:
        quality = obj.attributes.get(self.field)
        if quality is None:
            return False
        if isinstance(quality, str):
            quality = MUON_QUALITIES.index(quality) if quality in MUON_QUALITIES else len(MUON_QUALITIES)
        if self.max_eta is not None and np.abs(obj.eta) > self.max_eta:
            return False
        return int(quality) <= self.required


class WorkingPointManager:
    """Ordered family of working-point tools (loosest first) with one selected point.

    ``valid_tools()`` are the selected point and every tighter one; looser
    points are still decorated, but with ``False``.
    """

    def __init__(self, family: str, tools: Mapping[str, AcceptTool], order: Sequence[str], selected: str):
        self.family = family
        self.order = tuple(order)
        self.tools = dict(tools)
        missing = [wp for wp in self.order if wp not in self.tools]
        if missing:
            raise ConfigurationError(f"{family}: no tool provided for working point(s) {missing}.")
        if selected not in self.tools:
            raise ConfigurationError(
                f"{family}: selected working point '{selected}' not in available {list(self.order)}."
            )
        self.selected = selected

    def decoration_name(self, wp: str) -> str:
        return self.tools[wp].name

    def valid_tools(self) -> list[tuple[str, AcceptTool]]:
        start = self.order.index(self.selected)
        return [(wp, self.tools[wp]) for wp in self.order[start:]]

    def set_default_decorations(self, obj):
        for wp in self.order:
            obj.decorate(self.decoration_name(wp), False)

    def decorate(self, obj) -> dict[str, bool]:
        """Write every working-point decision on ``obj``; return them keyed by WP."""
        self.set_default_decorations(obj)
        results = {}
        for wp, tool in self.valid_tools():
            results[wp] = bool(tool.accept(obj))
            obj.decorate(tool.name, results[wp])
        return results


def default_lh_tools(field="likelihoodLevel"):
    """Likelihood tools reading an integer level (1 = VeryLoose ... 5 = VeryTight)."""
    return {wp: LevelTool(f"LH{wp}", field, i + 1) for i, wp in enumerate(LH_OPERATING_POINTS)}


def default_cut_based_tools(field="isEMLevel"):
    """Cut-based tools reading an integer level (1 = IsEMLoose ... 3 = IsEMTight)."""
    return {wp: LevelTool(wp, field, i + 1) for i, wp in enumerate(CUT_BASED_OPERATING_POINTS)}


def default_electron_isolation_tool(config):
    if config.isolation_wp == "UserDefined":
        return RatioIsolationTool(
            f"Isolation_{config.name}",
            config.track_iso_type, config.track_iso_cut,
            config.calo_iso_type, config.calo_iso_cut,
        )
    return FlagTool(f"Isolation{config.isolation_wp}", f"isolation{config.isolation_wp}")

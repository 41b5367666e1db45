"""Electron and muon selector algorithms.

Lifecycle (driven by ``SelectionProcessor`` or by hand):
    1) ``__init__`` resolves and validates the configuration (``ConfigurationError``).
    2) ``initialize()`` builds the tools, the decision engine and the cutflow.
    3) ``execute(event)`` once per event: reads the event weight and primary
       vertex, runs the systematics fan-out, and skips the event when no
       variation passes.
    4) ``finalize(hists)`` writes the cutflow bins.

Tools can be injected at construction; anything with ``name`` and
``accept(obj)`` works.  Defaults are documented in ``selcoffea.tools``.
"""

from __future__ import annotations

import logging

from selcoffea import tools as sel_tools
from selcoffea.cutflow import CutflowAccumulator, book_cutflow_hists
from selcoffea.decision import build_electron_engine, build_muon_engine
from selcoffea.errors import MissingUpstreamData
from selcoffea.event_data import ReferencePoint, primary_vertex
from selcoffea.selection_config import (
    CUT_BASED_OPERATING_POINTS,
    EVENT_WEIGHT_KEY,
    LH_OPERATING_POINTS,
    ElectronSelectionConfig,
    MuonSelectionConfig,
)
from selcoffea.selector import CollectionSelector
from selcoffea.systematics import SystematicsFanout


class ObjectSelector:
    """Common driver for one configured object selector instance."""

    config_class = None

    def __init__(self, name, config=None):
        self.name = name
        self.log = logging.getLogger(f"{__name__}.{name}")
        self.config = self.configure(config or {})
        self.log.setLevel(logging.DEBUG if self.config.debug else logging.NOTSET)
        self.cutflow = None
        self.fanout = None
        self.n_events = 0

    def configure(self, config):
        resolved = self.config_class.from_mapping(self.name, config)
        self.log.info("%s successfully configured: %s", type(self).__name__, resolved)
        return resolved

    def build_engine(self):
        raise NotImplementedError

    def initialize(self):
        engine = self.build_engine()
        self.log.debug("Decision order: %s", engine.names)
        self.cutflow = CutflowAccumulator(self.name) if self.config.use_cutflow else None
        selector = CollectionSelector(self.config, engine, cutflow=self.cutflow, log=self.log)
        self.fanout = SystematicsFanout(self.config, selector, log=self.log)
        self.log.info("%s successfully initialized!", type(self).__name__)
        return self

    @property
    def initialized(self) -> bool:
        return self.fanout is not None

    def event_weight(self, store) -> float:
        event_info = store.retrieve(self.config.event_info_name)
        weight = event_info.get(EVENT_WEIGHT_KEY) if hasattr(event_info, "get") else None
        if weight is None:
            raise MissingUpstreamData(f"{EVENT_WEIGHT_KEY} is not available in '{self.config.event_info_name}'. Aborting")
        return float(weight)

    def reference_point(self, store) -> ReferencePoint:
        vertices = store.retrieve(self.config.vertex_container_name)
        if isinstance(vertices, ReferencePoint):
            return vertices
        return primary_vertex(vertices)

    def execute(self, event):
        """Run the selection for one event; return the overall event-pass flag."""
        if not self.initialized:
            raise RuntimeError(f"{self.name}: execute() called before initialize().")

        self.log.debug("Applying %s... ", type(self).__name__)
        weight = self.event_weight(event.store)
        pv = self.reference_point(event.store)
        self.n_events += 1

        event_pass, _labels = self.fanout.run(event, pv, weight)
        return event_pass

    def finalize(self, hists=None):
        """Fill this instance's cutflow bins; return the (possibly newly booked) histograms."""
        if self.cutflow is None:
            return hists
        if hists is None:
            hists = book_cutflow_hists([self.name])
        self.log.info("Filling cutflow")
        return self.cutflow.finalize(hists)


class ElectronSelector(ObjectSelector):
    config_class = ElectronSelectionConfig

    def __init__(self, name, config=None, *, lh_tools=None, cut_based_tools=None, isolation_tool=None):
        super().__init__(name, config)
        self._lh_tools = lh_tools
        self._cut_based_tools = cut_based_tools
        self._isolation_tool = isolation_tool

    def build_engine(self):
        cfg = self.config
        lh_manager = sel_tools.WorkingPointManager(
            "likelihood",
            self._lh_tools or sel_tools.default_lh_tools(),
            LH_OPERATING_POINTS,
            cfg.selected_lh_wp,
        )
        self.log.debug("Selected LH WP: %s (config year %s)", lh_manager.selected, cfg.lh_config_year)
        cut_based_manager = sel_tools.WorkingPointManager(
            "cut-based",
            self._cut_based_tools or sel_tools.default_cut_based_tools(),
            CUT_BASED_OPERATING_POINTS,
            cfg.selected_cut_based_wp,
        )
        self.log.debug("Selected cut-based WP: %s (config year %s)", cut_based_manager.selected, cfg.cut_based_config_year)
        isolation_tool = self._isolation_tool or sel_tools.default_electron_isolation_tool(cfg)
        return build_electron_engine(cfg, lh_manager, cut_based_manager, isolation_tool, log=self.log)


class MuonSelector(ObjectSelector):
    config_class = MuonSelectionConfig

    def __init__(self, name, config=None, *, isolation_tool=None, quality_tool=None):
        super().__init__(name, config)
        self._isolation_tool = isolation_tool
        self._quality_tool = quality_tool

    def build_engine(self):
        cfg = self.config
        isolation_tool = self._isolation_tool or sel_tools.RatioIsolationTool(
            f"MuonIsolation_{self.name}",
            cfg.track_iso_type, cfg.track_iso_cut,
            cfg.calo_iso_type, cfg.calo_iso_cut,
        )
        quality_tool = self._quality_tool or sel_tools.MuonQualityTool(cfg.muon_quality, max_eta=cfg.eta_max)
        return build_muon_engine(cfg, isolation_tool, quality_tool, log=self.log)


ALGORITHMS = {
    "ElectronSelector": ElectronSelector,
    "MuonSelector": MuonSelector,
}

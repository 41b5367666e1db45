"""Cutflow bookkeeping for the selector algorithms.

Layout of the cutflow histograms (one bin per algorithm instance):
  - ``cutflow``           unweighted number of events passing
  - ``cutflow_weighted``  sum of event weights of events passing

Bins are string categories labelled with the algorithm name, so several
algorithms of one chain can share the same pair of histograms.  Chain-level
cumulative cutflows built from a ``PackedSelection`` are relabelled the
same way (see ``chain_cutflow``).
"""

from __future__ import annotations

import logging

import hist

logger = logging.getLogger(__name__)

CUTFLOW = "cutflow"
CUTFLOW_WEIGHTED = "cutflow_weighted"


def create_cutflow_hist(label="Selection step"):
    """Create an empty one-axis cutflow histogram with a growable string-category axis."""
    return hist.Hist(
        hist.axis.StrCategory([], name="cut", label=label, growth=True),
        storage=hist.storage.Double(),
    )


def book_cutflow_hists(names=()):
    """Book the ``cutflow`` / ``cutflow_weighted`` pair with one bin per name."""
    hists = {CUTFLOW: create_cutflow_hist(), CUTFLOW_WEIGHTED: create_cutflow_hist()}
    for h in hists.values():
        for name in names:
            cutflow_bin(h, name)
    return hists


def cutflow_bin(h, name):
    """Return the locator of the bin labelled ``name``, creating the bin if needed."""
    if name not in h.axes["cut"]:
        h.fill(cut=[name], weight=[0.0])
    return hist.loc(name)


class CutflowAccumulator:
    """Monotonically increasing object and event counters for one selector instance."""

    def __init__(self, name):
        self.name = name
        self.objects_seen = 0
        self.objects_passed = 0
        self.events_passed = 0
        self.weighted_events_passed = 0.0

    def add_objects(self, seen: int, passed: int):
        if seen < 0 or passed < 0:
            raise ValueError(f"Cutflow counts cannot decrease (seen={seen}, passed={passed}).")
        if passed > seen:
            raise ValueError(f"More objects passed ({passed}) than were seen ({seen}).")
        self.objects_seen += seen
        self.objects_passed += passed

    def add_event_pass(self, weight: float):
        self.events_passed += 1
        self.weighted_events_passed += float(weight)

    def finalize(self, hists):
        """Write the event-pass counters into this instance's bin of both cutflow histograms."""
        raw, weighted = hists[CUTFLOW], hists[CUTFLOW_WEIGHTED]
        raw[cutflow_bin(raw, self.name)] = float(self.events_passed)
        weighted[cutflow_bin(weighted, self.name)] = float(self.weighted_events_passed)
        logger.info(
            "Cutflow '%s': %d/%d objects passed, %d events passed (weighted %.4g)",
            self.name, self.objects_passed, self.objects_seen,
            self.events_passed, self.weighted_events_passed,
        )
        return hists

    def as_dict(self):
        return {
            "objects_seen": self.objects_seen,
            "objects_passed": self.objects_passed,
            "events_passed": self.events_passed,
            "weighted_events_passed": self.weighted_events_passed,
        }


def _relabel_cutflow(h_raw, cut_names):
    """Convert an Integer-axis cutflow histogram to one with StrCategory axis."""
    h = hist.Hist(
        hist.axis.StrCategory(cut_names, name="cut"),
        storage=h_raw.storage_type(),
    )
    h.view(flow=False)[...] = h_raw.view(flow=False)
    return h


def chain_cutflow(selections, steps, weights=None):
    """Build onecut / cumulative cutflows (weighted and unweighted) over the algorithm chain.

    ``selections`` is a ``PackedSelection`` holding one per-event pass mask
    per algorithm; ``steps`` is the chain order.
    """
    cut_names = ["no_cuts"] + list(steps)
    cf = selections.cutflow(*steps, weights=weights)

    bucket = {}
    if weights is not None:
        h_onecut, h_cum, _labels = cf.yieldhist(weighted=True)
        bucket["onecut"] = _relabel_cutflow(h_onecut, cut_names)
        bucket["cumulative"] = _relabel_cutflow(h_cum, cut_names)

    h_onecut_unw, h_cum_unw, _labels = cf.yieldhist(weighted=False)
    bucket["onecut_unweighted"] = _relabel_cutflow(h_onecut_unw, cut_names)
    bucket["cumulative_unweighted"] = _relabel_cutflow(h_cum_unw, cut_names)
    return bucket

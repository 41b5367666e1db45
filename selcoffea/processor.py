"""Coffea processor driving a chain of object selectors event by event.

High-level flow per chunk:
    1) Build (configure + initialize) a fresh instance of every selector in the chain.
    2) For each event, fill an ``EventStore`` with the input collections,
       the vertex container, EventInfo (event weight) and any upstream
       variation-label lists.
    3) Run the chain in order; stop the chain for that event as soon as an
       algorithm skips it.
    4) Finalize each selector into the shared ``cutflow`` / ``cutflow_weighted``
       histograms and build a chain cutflow with ``PackedSelection``.

Expected chunk layout: one jagged record field per input collection (record
fields ``pt``, ``eta``, ``phi``, optional track fields ``d0``, ``z0``,
``vz``, ``theta``, ``d0Var`` and any identity/quality attributes), a jagged
``PrimaryVertices`` field with ``x``, ``y``, ``z``, ``vertexType`` and an
``mcEventWeight`` column for simulation.
"""

from __future__ import annotations

import logging

import awkward as ak
import numpy as np
from coffea import processor
from coffea.analysis_tools import PackedSelection, Weights

from selcoffea.algorithms import ALGORITHMS
from selcoffea.cutflow import book_cutflow_hists, chain_cutflow
from selcoffea.errors import ConfigurationError
from selcoffea.event_data import EventContext, EventStore, collection_from_records
from selcoffea.selection_config import EVENT_INFO_KEY, EVENT_WEIGHT_KEY, VERTEX_CONTAINER_KEY

logger = logging.getLogger(__name__)

# Warn-once cache (per worker process) to avoid log spam.
_WARN_ONCE: set[str] = set()


def _warn_once(key, msg, *args):
    if key not in _WARN_ONCE:
        _WARN_ONCE.add(key)
        logger.warning(msg, *args)


class SelectionProcessor(processor.ProcessorABC):
    """Run an ordered chain of object selectors over NanoAOD-like awkward chunks.

    Parameters
    - `chain`: sequence of ``(kind, name, config)`` where `kind` is a key of
      ``ALGORITHMS`` ("ElectronSelector", "MuonSelector") and `config` the
      selector's key -> value configuration.
    - `tools`: optional ``{name: {keyword: tool}}`` injected into the
      selector of that name (e.g. ``{"muonSelect": {"quality_tool": t}}``).
    - `systematics`: optional ``{key: [labels]}`` variation lists published
      into every event store before the chain runs (first label "" = nominal).
    - `vertex_field` / `weight_field`: chunk fields holding vertices and the
      per-event MC weight.

    The whole configuration is validated at construction so that a bad
    chain fails before any chunk is processed.
    """

    def __init__(self, chain, tools=None, systematics=None,
                 vertex_field=VERTEX_CONTAINER_KEY, weight_field=EVENT_WEIGHT_KEY):
        self._chain = [tuple(item) for item in chain]
        self._tools = dict(tools or {})
        self._systematics = {key: list(labels) for key, labels in (systematics or {}).items()}
        self._vertex_field = vertex_field
        self._weight_field = weight_field

        names = [name for _kind, name, _cfg in self._chain]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Algorithm names in the chain must be unique, got {names}.")
        unknown = [kind for kind, _name, _cfg in self._chain if kind not in ALGORITHMS]
        if unknown:
            raise ConfigurationError(f"Unknown algorithm kind(s) {unknown}. Must be one of {sorted(ALGORITHMS)}.")
        # Validate configuration and tool wiring once, up front.
        self.build_algorithms()

    @property
    def algorithm_names(self):
        return [name for _kind, name, _cfg in self._chain]

    def build_algorithms(self):
        """Return freshly configured and initialized selector instances, in chain order."""
        algorithms = []
        for kind, name, config in self._chain:
            alg = ALGORITHMS[kind](name, config, **self._tools.get(name, {}))
            algorithms.append(alg.initialize())
        return algorithms

    def _input_fields(self, events, algorithms):
        prefixes = tuple(alg.config.input_container for alg in algorithms)
        reserved = {self._vertex_field, self._weight_field}
        return [f for f in events.fields if f not in reserved and f.startswith(prefixes)]

    def _event_weights(self, events, is_data):
        if self._weight_field in events.fields:
            return ak.to_numpy(events[self._weight_field]).astype(np.float64)
        if is_data:
            _warn_once("unit_weights", "No '%s' column in data chunk; using unit weights.", self._weight_field)
            return np.ones(len(events), dtype=np.float64)
        # MC without weights: left out of the store so the selectors fail loudly.
        return None

    def select_events(self, events, is_data=False):
        """Run the chain over every event of ``events``.

        Returns ``(algorithms, event_pass, algorithm_pass, stores)``:
          - `event_pass`: numpy bool mask, True if no algorithm skipped the event
          - `algorithm_pass`: ``{name: mask}``; False where the algorithm
            failed the event or never ran on it
          - `stores`: the per-event ``EventStore`` objects (decorated
            objects, materialized collections, output label lists)
        """
        algorithms = self.build_algorithms()
        n = len(events)

        fields = self._input_fields(events, algorithms)
        columns = {name: ak.to_list(events[name]) for name in fields}
        vertices = ak.to_list(events[self._vertex_field]) if self._vertex_field in events.fields else None
        weights = self._event_weights(events, is_data)

        event_pass = np.zeros(n, dtype=bool)
        algorithm_pass = {alg.name: np.zeros(n, dtype=bool) for alg in algorithms}
        stores = []

        for i in range(n):
            store = EventStore()
            for name, column in columns.items():
                store.record(collection_from_records(column[i]), name)
            if vertices is not None:
                store.record(vertices[i], self._vertex_field)
            if weights is not None:
                store.record({EVENT_WEIGHT_KEY: float(weights[i])}, EVENT_INFO_KEY)
            for key, labels in self._systematics.items():
                store.record(list(labels), key)

            event = EventContext(store, index=i)
            for alg in algorithms:
                algorithm_pass[alg.name][i] = alg.execute(event)
                if event.skipped:
                    break
            event_pass[i] = not event.skipped
            stores.append(store)

        return algorithms, event_pass, algorithm_pass, stores

    def process(self, events):
        """Run the chain for one chunk and return a dataset-nested output dict."""
        metadata = getattr(events, "metadata", None) or {}
        dataset = metadata.get("dataset", "events")
        datatype = (metadata.get("datatype") or "").strip().lower()
        is_data = datatype == "data"

        algorithms, event_pass, algorithm_pass, _stores = self.select_events(events, is_data=is_data)

        hists = book_cutflow_hists(self.algorithm_names)
        for alg in algorithms:
            alg.finalize(hists)

        output = {
            "cutflow": hists,
            "n_events": len(events),
            "n_pass": int(np.sum(event_pass)),
        }

        if algorithms:
            selections = PackedSelection()
            for name, mask in algorithm_pass.items():
                selections.add(name, mask)
            weights = None
            event_weights = self._event_weights(events, is_data)
            if event_weights is not None:
                weights = Weights(len(events))
                weights.add("event_weight", event_weights)
            output["chain_cutflow"] = chain_cutflow(selections, self.algorithm_names, weights=weights)

        return {dataset: output}

    def postprocess(self, accumulator):
        return accumulator


def selected_collection(stores, key):
    """Gather a materialized collection from every event store into one jagged awkward array.

    Events where nothing was recorded under ``key`` (failed or skipped) get
    an empty list.
    """
    return ak.Array([
        [obj.to_record() for obj in store.retrieve(key)] if store.contains(key) else []
        for store in stores
    ])

"""Per-collection selection: one pass of the decision engine over one collection."""

from __future__ import annotations

import logging

from selcoffea.decision import NOT_EVALUATED, PASS
from selcoffea.event_data import ObjectCollection
from selcoffea.selection_config import DECOR_PASS_SEL

logger = logging.getLogger(__name__)


class CollectionSelector:
    """Apply a ``DecisionEngine`` to every object of a collection and gate the event.

    Parameters
    - `config`: a ``SelectionConfig`` (cap, decoration/materialization flags, PassMin/PassMax).
    - `engine`: the ``DecisionEngine`` deciding each object.
    - `cutflow`: ``CutflowAccumulator`` updated on counted passes, or None to skip accounting.
    """

    def __init__(self, config, engine, cutflow=None, log=None):
        self.config = config
        self.engine = engine
        self.cutflow = cutflow
        self._log = log or logger

    def select_all(self, objects, reference_point, event_weight, count_this_pass):
        """Return ``(event_pass, passed_objects)``.

        ``passed_objects`` is the materialized sub-collection when
        ``CreateSelectedContainer`` is on and the event passes, otherwise None.
        """
        cfg = self.config
        selected = ObjectCollection() if cfg.create_selected_container else None

        n_obj = 0
        n_pass = 0
        for index, obj in enumerate(objects):
            # Beyond the cap: keep going only to decorate the remainder.
            if cfg.n_to_process is not None and index >= cfg.n_to_process:
                if not cfg.decorate_selected_objects:
                    break
                obj.decorate(DECOR_PASS_SEL, NOT_EVALUATED)
                continue

            n_obj += 1
            outcome = self.engine.decide(obj, reference_point)
            if cfg.decorate_selected_objects:
                obj.decorate(DECOR_PASS_SEL, outcome)

            if outcome == PASS:
                n_pass += 1
                if selected is not None:
                    selected.append(obj)

        if count_this_pass and self.cutflow is not None:
            self.cutflow.add_objects(n_obj, n_pass)

        self._log.debug("Initial objects: %i - Selected objects: %i", n_obj, n_pass)

        if cfg.pass_min is not None and n_pass < cfg.pass_min:
            return False, None
        if cfg.pass_max is not None and n_pass > cfg.pass_max:
            return False, None

        if count_this_pass and self.cutflow is not None:
            self.cutflow.add_event_pass(event_weight)

        return True, selected

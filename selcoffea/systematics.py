"""Fan-out of a collection selection over systematic variations.

Two modes, chosen by whether an upstream variation-list key is configured:

  - single collection: the input container is processed once, as the
    nominal ("") variation, and always counted in the cutflow;
  - fan-out: the upstream list of labels (first entry conventionally "",
    the nominal) is read from the event store, the selection is re-run on
    ``InputContainer + label`` for each label, only the first label is
    counted, and the list of labels whose event passed is recorded under
    ``OutputAlgoSystNames``.

Variations run strictly in order and all of them are processed before the
event is skipped.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class SystematicsFanout:
    def __init__(self, config, selector, log=None):
        self.config = config
        self.selector = selector
        self._log = log or logger

    def labels(self, store):
        """Return the variation labels to process for this event."""
        if not self.config.fanout:
            return [""]
        labels = list(store.retrieve(self.config.input_algo_syst_names))
        self._log.debug("input list of syst size: %i", len(labels))
        return labels

    def run(self, event, reference_point, event_weight):
        """Select every variation of the event; return ``(event_pass, passing_labels)``."""
        cfg = self.config
        store = event.store

        event_pass = False
        passing_labels = []
        count_pass = True
        for label in self.labels(store):
            in_name = cfg.input_container + label
            self._log.debug("syst name: '%s'  input container name: %s", label, in_name)
            objects = store.retrieve(in_name)

            pass_this_syst, selected = self.selector.select_all(
                objects, reference_point, event_weight, count_pass,
            )
            # only the first (nominal) variation is counted
            count_pass = False

            if pass_this_syst:
                passing_labels.append(label)
            event_pass = event_pass or pass_this_syst

            if cfg.create_selected_container and pass_this_syst:
                store.record(selected, cfg.output_container + label)

        if cfg.fanout:
            self._log.debug("output list of syst size: %i", len(passing_labels))
            store.record(passing_labels, cfg.output_algo_syst_names)

        if not event_pass:
            event.skip()

        return event_pass, passing_labels

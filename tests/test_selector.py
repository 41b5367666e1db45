"""Tests for the per-collection selection loop (cap, decoration, PassMin/PassMax, counting)."""

import pytest

from selcoffea.criteria import pt_min
from selcoffea.cutflow import CutflowAccumulator
from selcoffea.decision import DecisionEngine, Step
from selcoffea.event_data import ObjectCollection, PhysicsObject, ReferencePoint
from selcoffea.selection_config import MuonSelectionConfig
from selcoffea.selector import CollectionSelector

PV = ReferencePoint(0.0, 0.0, 0.0)


def _collection(*pts):
    return ObjectCollection(PhysicsObject(pt=pt, eta=0.0) for pt in pts)


def _selector(config=None, with_cutflow=True):
    cfg = MuonSelectionConfig.from_mapping("muSel", {"InputContainer": "Muons", **(config or {})})
    engine = DecisionEngine([Step(pt_min(10.0))])
    cutflow = CutflowAccumulator("muSel") if with_cutflow else None
    return CollectionSelector(cfg, engine, cutflow=cutflow), cutflow


class TestSelectAll:
    def test_decorates_outcomes(self):
        selector, _ = _selector()
        objects = _collection(15.0, 5.0)
        passed, selected = selector.select_all(objects, PV, 1.0, True)
        assert passed
        assert selected is None
        assert [o.decoration("passSel") for o in objects] == [1, 0]

    def test_no_decoration_when_disabled(self):
        selector, _ = _selector({"DecorateSelectedObjects": False})
        objects = _collection(15.0)
        selector.select_all(objects, PV, 1.0, True)
        assert objects[0].decoration("passSel") is None

    def test_materializes_passing_objects_in_order(self):
        selector, _ = _selector({"CreateSelectedContainer": True, "OutputContainer": "SelMuons"})
        objects = _collection(30.0, 5.0, 12.0)
        passed, selected = selector.select_all(objects, PV, 1.0, True)
        assert passed
        assert list(selected) == [objects[0], objects[2]]
        # references, not copies
        assert selected[0] is objects[0]

    def test_cap_marks_remaining_not_evaluated(self):
        selector, cutflow = _selector({"NToProcess": 2})
        objects = _collection(15.0, 5.0, 50.0, 60.0)
        selector.select_all(objects, PV, 1.0, True)
        assert [o.decoration("passSel") for o in objects] == [1, 0, -1, -1]
        assert cutflow.objects_seen == 2
        assert cutflow.objects_passed == 1

    def test_cap_without_decoration_stops(self):
        selector, cutflow = _selector({"NToProcess": 1, "DecorateSelectedObjects": False})
        objects = _collection(15.0, 50.0)
        selector.select_all(objects, PV, 1.0, True)
        assert objects[1].decoration("passSel") is None
        assert cutflow.objects_seen == 1

    def test_zero_cap(self):
        selector, cutflow = _selector({"NToProcess": 0})
        objects = _collection(15.0)
        passed, _ = selector.select_all(objects, PV, 1.0, True)
        assert passed
        assert objects[0].decoration("passSel") == -1
        assert cutflow.objects_seen == 0


class TestEventGate:
    def test_pass_min_failure(self):
        selector, cutflow = _selector({"PassMin": 1, "CreateSelectedContainer": True, "OutputContainer": "SelMuons"})
        passed, selected = selector.select_all(_collection(5.0), PV, 1.0, True)
        assert not passed
        assert selected is None
        # objects are counted even when the event fails
        assert cutflow.objects_seen == 1
        assert cutflow.objects_passed == 0
        assert cutflow.events_passed == 0

    def test_pass_max(self):
        selector, _ = _selector({"PassMax": 1})
        assert not selector.select_all(_collection(15.0, 20.0), PV, 1.0, True)[0]
        assert selector.select_all(_collection(15.0, 2.0), PV, 1.0, True)[0]

    def test_pass_max_zero(self):
        selector, _ = _selector({"PassMax": 0})
        assert selector.select_all(_collection(5.0), PV, 1.0, True)[0]
        assert not selector.select_all(_collection(15.0), PV, 1.0, True)[0]

    def test_empty_collection_passes_without_bounds(self):
        selector, cutflow = _selector()
        passed, _ = selector.select_all(ObjectCollection(), PV, 2.5, True)
        assert passed
        assert cutflow.events_passed == 1
        assert cutflow.weighted_events_passed == pytest.approx(2.5)


class TestCounting:
    def test_uncounted_pass_leaves_cutflow_untouched(self):
        selector, cutflow = _selector()
        selector.select_all(_collection(15.0, 5.0), PV, 1.0, False)
        assert cutflow.as_dict() == {
            "objects_seen": 0, "objects_passed": 0, "events_passed": 0, "weighted_events_passed": 0.0,
        }

    def test_weighted_count(self):
        selector, cutflow = _selector()
        selector.select_all(_collection(15.0), PV, 0.5, True)
        selector.select_all(_collection(25.0), PV, 1.5, True)
        assert cutflow.events_passed == 2
        assert cutflow.weighted_events_passed == pytest.approx(2.0)

    def test_works_without_cutflow(self):
        selector, _ = _selector(with_cutflow=False)
        assert selector.select_all(_collection(15.0), PV, 1.0, True)[0]

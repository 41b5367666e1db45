"""Object-level selection criteria.

Each factory returns a named ``Criterion``: a predicate
``(obj, reference_point) -> bool`` with its configuration bound in.
Disabled criteria are never built; the decision engine only ever sees the
ones that apply.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from selcoffea.selection_config import (
    AUTHOR_AMBIGUOUS,
    AUTHOR_ELECTRON,
    CRACK_ETA_HIGH,
    CRACK_ETA_LOW,
    DECOR_IS_ISOLATED,
    MUON_TYPES,
    OQ_BAD_CLUSTER_MASK,
)

Check = Callable[[object, object], bool]


@dataclass(frozen=True)
class Criterion:
    name: str
    check: Check

    def __call__(self, obj, reference_point) -> bool:
        return bool(self.check(obj, reference_point))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def muon_type_name(value) -> str:
    """Normalize a muon type given as enum integer (0 = Combined) or name."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    index = int(value) + 1
    if 0 < index < len(MUON_TYPES):
        return MUON_TYPES[index]
    return ""


def is_standalone(obj) -> bool:
    return muon_type_name(obj.attributes.get("muonType")) == "MuonStandAlone"


# ---------------------------------------------------------------------------
# Kinematics
# ---------------------------------------------------------------------------

def pt_max(bound: float) -> Criterion:
    return Criterion("pT max", lambda obj, pv: obj.pt <= bound)


def pt_min(bound: float) -> Criterion:
    return Criterion("pT min", lambda obj, pv: obj.pt >= bound)


def eta_max(bound: float) -> Criterion:
    return Criterion("|eta| max", lambda obj, pv: np.abs(obj.eta) <= bound)


def crack_veto() -> Criterion:
    """Veto calorimeter clusters in the barrel/endcap transition region."""

    def check(obj, pv):
        cluster_eta = obj.attributes.get("clusterEta")
        if cluster_eta is None:
            return True
        return not (CRACK_ETA_LOW < np.abs(cluster_eta) < CRACK_ETA_HIGH)

    return Criterion("|eta| crack veto", check)


# ---------------------------------------------------------------------------
# Impact parameters (objects without a track, or without the track
# parameters a cut needs, fail)
# ---------------------------------------------------------------------------

def d0_max(bound: float) -> Criterion:
    return Criterion("d0", lambda obj, pv: obj.track is not None and np.abs(obj.track.d0) < bound)


def d0sig_max(bound: float) -> Criterion:
    def check(obj, pv):
        if obj.track is None:
            return False
        d0sig = obj.track.d0_significance
        return d0sig is not None and d0sig < bound

    return Criterion("d0 significance", check)


def z0sintheta_max(bound: float) -> Criterion:
    def check(obj, pv):
        if obj.track is None:
            return False
        z0sintheta = obj.track.z0_sintheta(pv.z)
        return z0sintheta is not None and np.abs(z0sintheta) < bound

    return Criterion("z0*sin(theta)", check)


# ---------------------------------------------------------------------------
# Identity / quality tags
# ---------------------------------------------------------------------------

def author() -> Criterion:
    def check(obj, pv):
        value = obj.attributes.get("author")
        return value is not None and bool(int(value) & (AUTHOR_ELECTRON | AUTHOR_AMBIGUOUS))

    return Criterion("author", check)


def object_quality() -> Criterion:
    def check(obj, pv):
        value = obj.attributes.get("OQ")
        return value is not None and (int(value) & OQ_BAD_CLUSTER_MASK) == 0

    return Criterion("Object Quality", check)


def muon_type(required: str) -> Criterion:
    return Criterion(
        f"muon type {required}",
        lambda obj, pv: muon_type_name(obj.attributes.get("muonType")) == required,
    )


def decoration_keys(pass_keys, fail_keys) -> Criterion:
    """Require every pass key to be set and no fail key to be set."""

    def check(obj, pv):
        if not all(obj.flag(key) for key in pass_keys):
            return False
        return not any(obj.flag(key) for key in fail_keys)

    return Criterion("pass/fail decoration keys", check)


# ---------------------------------------------------------------------------
# Tool-backed criteria (these write decorations as a side effect)
# ---------------------------------------------------------------------------

def working_point(manager) -> Criterion:
    """Decorate all working points of ``manager`` and return the selected one."""

    def check(obj, pv):
        results = manager.decorate(obj)
        return results[manager.selected]

    return Criterion(f"{manager.family} PID", check)


def isolation(tool) -> Criterion:
    def check(obj, pv):
        passed = bool(tool.accept(obj))
        obj.decorate(DECOR_IS_ISOLATED, passed)
        return passed

    return Criterion("isolation", check)


def tool_accept(tool, label=None) -> Criterion:
    return Criterion(label or f"requirements of {tool.name}", lambda obj, pv: tool.accept(obj))

"""Ordered, short-circuiting object decisions.

The evaluation order is part of the contract: the identification and
isolation steps decorate the object as a side effect, so an earlier failing
hard cut means those decorations are never written.  The engine is
therefore an explicit ordered list of ``(criterion, hard)`` steps rather
than a set of independent masks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from selcoffea import criteria
from selcoffea.criteria import Criterion

logger = logging.getLogger(__name__)

PASS = 1
FAIL = 0
NOT_EVALUATED = -1


@dataclass(frozen=True)
class Step:
    criterion: Criterion
    hard: bool = True
    # Objects for which ``applies`` is False skip this step entirely.
    applies: Callable[[object], bool] | None = None


class DecisionEngine:
    def __init__(self, steps, log=None):
        self.steps = tuple(steps)
        self._log = log or logger

    @property
    def names(self) -> list[str]:
        return [step.criterion.name for step in self.steps]

    def decide(self, obj, reference_point) -> int:
        """Return 1 if ``obj`` passes every applicable hard step, else 0 at the first failure."""
        for step in self.steps:
            if step.applies is not None and not step.applies(obj):
                continue
            passed = step.criterion(obj, reference_point)
            if step.hard and not passed:
                self._log.debug("Object failed %s cut.", step.criterion.name)
                return FAIL
        return PASS


def _common_prefix(config):
    steps = []
    if config.pass_decor_keys or config.fail_decor_keys:
        steps.append(Step(criteria.decoration_keys(config.pass_decor_keys, config.fail_decor_keys)))
    return steps


def _kinematic_steps(config):
    steps = []
    if config.pt_max is not None:
        steps.append(Step(criteria.pt_max(config.pt_max)))
    if config.pt_min is not None:
        steps.append(Step(criteria.pt_min(config.pt_min)))
    if config.eta_max is not None:
        steps.append(Step(criteria.eta_max(config.eta_max)))
    return steps


def _impact_parameter_steps(config, applies=None):
    steps = []
    if config.d0_max is not None:
        steps.append(Step(criteria.d0_max(config.d0_max), applies=applies))
    if config.d0sig_max is not None:
        steps.append(Step(criteria.d0sig_max(config.d0sig_max), applies=applies))
    if config.z0sintheta_max is not None:
        steps.append(Step(criteria.z0sintheta_max(config.z0sintheta_max), applies=applies))
    return steps


def build_electron_engine(config, lh_manager, cut_based_manager, isolation_tool, log=None) -> DecisionEngine:
    """Electron order: keys, author, OQ, kinematics, crack, impact parameters, LH, cut-based, isolation."""
    steps = _common_prefix(config)
    if config.do_author_cut:
        steps.append(Step(criteria.author()))
    if config.do_oq_cut:
        steps.append(Step(criteria.object_quality()))
    steps += _kinematic_steps(config)
    if config.veto_crack:
        steps.append(Step(criteria.crack_veto()))
    steps += _impact_parameter_steps(config)
    steps.append(Step(criteria.working_point(lh_manager), hard=config.do_lh_pid_cut))
    steps.append(Step(criteria.working_point(cut_based_manager), hard=config.do_cut_based_pid_cut))
    steps.append(Step(criteria.isolation(isolation_tool), hard=config.do_isolation))
    return DecisionEngine(steps, log=log)


def build_muon_engine(config, isolation_tool, quality_tool, log=None) -> DecisionEngine:
    """Muon order: keys, kinematics, impact parameters (not for stand-alone), type, isolation, quality tool."""
    steps = _common_prefix(config)
    steps += _kinematic_steps(config)
    steps += _impact_parameter_steps(config, applies=lambda obj: not criteria.is_standalone(obj))
    if config.muon_type:
        steps.append(Step(criteria.muon_type(config.muon_type)))
    steps.append(Step(criteria.isolation(isolation_tool), hard=config.do_isolation))
    steps.append(Step(criteria.tool_accept(quality_tool)))
    return DecisionEngine(steps, log=log)

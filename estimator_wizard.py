from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional, Tuple, Union

from ai_proposal import Proposal
from estimate_engine import EstimateResult, SelectionState, compute_total, generate_estimate
from handoff import EstimationRecord, build_estimation_record
from pricing_catalog import CatalogError, PricingCatalog


class WizardStep(IntEnum):
    CATEGORY = 1
    FEATURES = 2
    SCALE_AND_OPTIONS = 3
    RESULT = 4


STEP_TITLES = {
    WizardStep.CATEGORY: "作るもの",
    WizardStep.FEATURES: "必要な機能",
    WizardStep.SCALE_AND_OPTIONS: "規模とデザイン",
    WizardStep.RESULT: "概算結果",
}


@dataclass(frozen=True)
class ProposalAbsent:
    pass


@dataclass(frozen=True)
class ProposalPending:
    ticket: int


@dataclass(frozen=True)
class ProposalReady:
    proposal: Proposal


ProposalSlot = Union[ProposalAbsent, ProposalPending, ProposalReady]

# Tickets are unique for the process so a result from before a reset can never match.
_tickets = itertools.count(1)


class EstimatorWizard:
    """
    Four-step estimate flow for one visitor session.

    Every selection mutator recomputes the total synchronously and returns it.
    Navigation helpers return False (and change nothing) when the move is not allowed.
    """

    def __init__(self, catalog: PricingCatalog) -> None:
        self.catalog = catalog
        self._state = SelectionState.default(catalog)
        self._step = WizardStep.CATEGORY
        self._proposal: ProposalSlot = ProposalAbsent()
        self._total = compute_total(self._state, catalog)

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def step(self) -> WizardStep:
        return self._step

    @property
    def total_jpy(self) -> int:
        return self._total

    @property
    def proposal_slot(self) -> ProposalSlot:
        return self._proposal

    @property
    def proposal(self) -> Optional[Proposal]:
        if isinstance(self._proposal, ProposalReady):
            return self._proposal.proposal
        return None

    @property
    def can_request_proposal(self) -> bool:
        return isinstance(self._proposal, ProposalAbsent)

    @property
    def visited_steps(self) -> Tuple[WizardStep, ...]:
        return tuple(s for s in WizardStep if s <= self._step)

    def estimate(self) -> EstimateResult:
        return generate_estimate(self._state, self.catalog)

    def _commit(self, state: SelectionState) -> int:
        self._total = compute_total(state, self.catalog)
        self._state = state
        return self._total

    # Selection

    def select_category(self, category_id: object) -> int:
        category = self.catalog.category(category_id)
        total = self._commit(replace(self._state, category=category.id))
        if self._step == WizardStep.CATEGORY:
            self._step = WizardStep.FEATURES
        return total

    def toggle_feature(self, feature_id: str) -> int:
        if not self.catalog.has_feature(feature_id):
            raise CatalogError(f"unknown feature id {feature_id!r}")
        return self._commit(self._state.with_feature_toggled(feature_id))

    def select_scale(self, scale_id: object) -> int:
        scale = self.catalog.scale(scale_id)
        return self._commit(replace(self._state, scale=scale.id))

    def set_design_provided(self, provided: bool) -> int:
        return self._commit(replace(self._state, design_provided=bool(provided)))

    def set_maintenance(self, wanted: bool) -> int:
        return self._commit(replace(self._state, wants_maintenance=bool(wanted)))

    # Navigation

    def advance(self) -> bool:
        if self._step >= WizardStep.RESULT:
            return False
        self._step = WizardStep(self._step + 1)
        return True

    def retreat(self) -> bool:
        if self._step <= WizardStep.CATEGORY:
            return False
        self._step = WizardStep(self._step - 1)
        return True

    def jump_to(self, step: int) -> bool:
        try:
            target = WizardStep(int(step))
        except ValueError:
            return False
        if target > self._step:
            return False
        self._step = target
        return True

    def reset(self) -> int:
        self._state = SelectionState.default(self.catalog)
        self._step = WizardStep.CATEGORY
        # Dropping a pending ticket is what makes a late proposal result get discarded.
        self._proposal = ProposalAbsent()
        self._total = compute_total(self._state, self.catalog)
        return self._total

    # Proposal lifecycle

    def begin_proposal(self) -> Optional[int]:
        if not isinstance(self._proposal, ProposalAbsent):
            return None
        ticket = next(_tickets)
        self._proposal = ProposalPending(ticket)
        return ticket

    def complete_proposal(self, ticket: int, proposal: Proposal) -> bool:
        slot = self._proposal
        if not isinstance(slot, ProposalPending) or slot.ticket != ticket:
            return False
        self._proposal = ProposalReady(proposal)
        return True

    # Handoff

    def build_record(self) -> EstimationRecord:
        return build_estimation_record(self._state, self._total, self.proposal)

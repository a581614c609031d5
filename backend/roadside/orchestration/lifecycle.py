"""
Claim lifecycle: stage graph and transition guards.

data_gathering -> coverage_check -> arranging_services -> completed
"""
from dataclasses import dataclass
from typing import List, Union

from roadside.db.models import Claim, ClaimStage, STAGE_ORDER


# Valid transitions from each stage
STAGE_TRANSITIONS = {
    ClaimStage.DATA_GATHERING: [ClaimStage.COVERAGE_CHECK],
    ClaimStage.COVERAGE_CHECK: [ClaimStage.ARRANGING_SERVICES],
    ClaimStage.ARRANGING_SERVICES: [ClaimStage.COMPLETED],
    ClaimStage.COMPLETED: [],  # Terminal state
}

# Fields needed before coverage can be checked
REQUIRED_FOR_COVERAGE = ("policy_number", "location", "incident_description")

# Fields worth asking for but not blocking
RECOMMENDED_FIELDS = ("driver_name", "driver_phone", "vehicle_make", "vehicle_model", "vehicle_year")


@dataclass
class TransitionCheck:
    """Outcome of a guard evaluation."""
    allowed: bool
    reason: str = ""


def _as_stage(stage: Union[str, ClaimStage]) -> ClaimStage:
    return stage if isinstance(stage, ClaimStage) else ClaimStage(stage)


def stage_index(stage: Union[str, ClaimStage]) -> int:
    return STAGE_ORDER.index(_as_stage(stage))


def is_forward(current: Union[str, ClaimStage], target: Union[str, ClaimStage]) -> bool:
    """True when target is the current stage or later."""
    return stage_index(target) >= stage_index(current)


def get_next_stages(stage: Union[str, ClaimStage]) -> List[ClaimStage]:
    """Get valid next stages from the given stage."""
    return list(STAGE_TRANSITIONS.get(_as_stage(stage), []))


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def missing_required_fields(claim: Claim) -> List[str]:
    """Required fields still empty on the claim, in asking order."""
    return [name for name in REQUIRED_FOR_COVERAGE if _is_blank(getattr(claim, name))]


def missing_recommended_fields(claim: Claim) -> List[str]:
    return [name for name in RECOMMENDED_FIELDS if _is_blank(getattr(claim, name))]


def coverage_recorded(claim: Claim) -> bool:
    return claim.is_covered is not None and claim.coverage_details is not None


def check_transition(
    claim: Claim,
    target: Union[str, ClaimStage],
    user_confirmed: bool,
) -> TransitionCheck:
    """
    Decide whether the claim may move to ``target``.

    Re-entering the current stage is always allowed so the stage's tool can
    be re-run. Moving back, or skipping a stage, never is.
    """
    current = claim.stage
    target = _as_stage(target)

    if target == current:
        return TransitionCheck(True, "already in this stage")

    if not is_forward(current, target):
        return TransitionCheck(False, f"claim is already in {current.value}; stages cannot go back")

    if target not in STAGE_TRANSITIONS[current]:
        return TransitionCheck(False, f"{current.value} can only move to the next stage")

    if target == ClaimStage.COVERAGE_CHECK:
        missing = missing_required_fields(claim)
        if missing:
            return TransitionCheck(False, f"missing required information: {', '.join(missing)}")

    elif target == ClaimStage.ARRANGING_SERVICES:
        if not coverage_recorded(claim):
            return TransitionCheck(False, "coverage has not been checked yet")
        if claim.is_covered is not True:
            return TransitionCheck(False, "the policy does not cover the requested services")

    elif target == ClaimStage.COMPLETED:
        if not claim.arranged_services:
            return TransitionCheck(False, "no services have been arranged")

    if not user_confirmed:
        return TransitionCheck(False, "the driver has not confirmed yet")

    return TransitionCheck(True)


def progress_percent(stage: Union[str, ClaimStage]) -> int:
    """Progress through the lifecycle, 100 once completed."""
    index = stage_index(stage)
    return int((index / (len(STAGE_ORDER) - 1)) * 100)

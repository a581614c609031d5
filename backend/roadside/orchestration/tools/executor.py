"""
Tool Executor - runs the claim tools the model asks for.

Every call returns a JSON-serializable dict. Bad arguments, unknown tools,
directory misses and refused transitions come back as results the model can
read; only store outages escape as exceptions.
"""
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roadside.core.exceptions import ClaimNotFoundError, TransitionRejected
from roadside.core.data_classification import sanitize_for_logging
from roadside.core.logging import get_logger, log_audit_event
from roadside.db.models import Claim, ClaimStage, Policy, PROVIDER_TAGS, SERVICE_LABELS, ServiceType
from roadside.orchestration.lifecycle import check_transition, stage_index
from roadside.orchestration.tools.schemas import (
    SaveClaimDataArgs,
    PolicyNumberArgs,
    PhoneLookupArgs,
    NameLookupArgs,
    RecordCoverageDecisionArgs,
    ServiceTypeArgs,
    ArrangeServicesArgs,
    CompleteClaimArgs,
)
from roadside.services.claim_store import ClaimStore
from roadside.services.coverage import evaluate_coverage, normalize_service
from roadside.services.db_utils import DatabaseOperationError
from roadside.services.directory import PolicyDirectory, provider_tag_for

logger = get_logger(__name__)


TOOL_SCHEMAS: Dict[str, type] = {
    "save_claim_data": SaveClaimDataArgs,
    "get_customer_by_policy": PolicyNumberArgs,
    "find_policy_by_phone": PhoneLookupArgs,
    "find_policy_by_name": NameLookupArgs,
    "get_policy_coverage": PolicyNumberArgs,
    "record_coverage_decision": RecordCoverageDecisionArgs,
    "get_available_providers": ServiceTypeArgs,
    "arrange_services": ArrangeServicesArgs,
    "complete_claim": CompleteClaimArgs,
}


def _error(message: str, **extra) -> Dict[str, Any]:
    result = {"success": False, "error": message}
    result.update(extra)
    return result


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "arguments"
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


class ToolExecutor:
    """Executes claim tools against the store and directory for one claim."""

    def __init__(
        self,
        db: Session,
        claim_id: str,
        store: Optional[ClaimStore] = None,
        directory: Optional[PolicyDirectory] = None,
    ):
        self.db = db
        self.claim_id = str(claim_id)
        self.store = store or ClaimStore(db)
        self.directory = directory or PolicyDirectory(db)
        # Notifications queued during this executor's lifetime, for publishing
        self.notifications_created: List[Dict[str, Any]] = []
        self.calls: List[Dict[str, Any]] = []
        self._handlers: Dict[str, Callable[[BaseModel], Dict[str, Any]]] = {
            "save_claim_data": self._save_claim_data,
            "get_customer_by_policy": self._get_customer_by_policy,
            "find_policy_by_phone": self._find_policy_by_phone,
            "find_policy_by_name": self._find_policy_by_name,
            "get_policy_coverage": self._get_policy_coverage,
            "record_coverage_decision": self._record_coverage_decision,
            "get_available_providers": self._get_available_providers,
            "arrange_services": self._arrange_services,
            "complete_claim": self._complete_claim,
        }

    @property
    def tool_names(self) -> List[str]:
        return list(self._handlers)

    def execute(self, name: str, args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Run one tool call and return its result."""
        result = self._dispatch(name, args)
        self.calls.append({
            "tool": name,
            "success": result.get("success", True),
        })
        return result

    def _dispatch(self, name: str, args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"Model requested unknown tool '{name}' for claim {self.claim_id}")
            return _error(f"Unknown tool: {name}", available_tools=self.tool_names)

        logger.debug(f"Tool {name} on claim {self.claim_id}: {sanitize_for_logging(args or {})}")
        try:
            parsed = TOOL_SCHEMAS[name].model_validate(args or {})
        except ValidationError as e:
            logger.info(f"Invalid arguments for {name}: {_format_validation_error(e)}")
            return _error(f"Invalid arguments for {name}: {_format_validation_error(e)}")

        try:
            return handler(parsed)
        except TransitionRejected as e:
            logger.info(f"Transition refused for claim {self.claim_id}: {e}")
            return _error(
                f"Cannot continue yet: {e.reason}",
                current_stage=e.current,
                requested_stage=e.target,
            )
        except (DatabaseOperationError, ClaimNotFoundError, SQLAlchemyError):
            raise
        except Exception as e:
            logger.exception(f"Tool {name} failed for claim {self.claim_id}: {e}")
            return _error(f"{name} failed unexpectedly")

    # ---- Helpers ----

    def _claim(self) -> Claim:
        return self.store.load(self.claim_id)

    def _guard(self, claim: Claim, target: ClaimStage, user_confirmed: bool) -> None:
        check = check_transition(claim, target, user_confirmed)
        if not check.allowed:
            raise TransitionRejected(claim.stage.value, target.value, check.reason)

    @staticmethod
    def _policy_matches(policies: List[Policy], searched_by: str) -> Dict[str, Any]:
        if not policies:
            return {"found": False, "message": f"No policy found for that {searched_by}"}
        if len(policies) == 1:
            return {"found": True, "single_match": True, "policy": policies[0].to_summary()}
        return {
            "found": True,
            "single_match": False,
            "policies": [p.to_summary() for p in policies],
            "message": "Several policies match; ask the driver which one is theirs",
        }

    # ---- Tools ----

    def _save_claim_data(self, args: SaveClaimDataArgs) -> Dict[str, Any]:
        claim = self._claim()
        if claim.stage == ClaimStage.COMPLETED:
            return _error("This claim is already completed and can no longer be changed")

        values = args.model_dump(exclude_none=True)
        if values:
            self.store.update(self.claim_id, values)
            logger.info(f"Saved fields {sorted(values)} on claim {self.claim_id}")
        return {"success": True, "saved": values}

    def _get_customer_by_policy(self, args: PolicyNumberArgs) -> Dict[str, Any]:
        policy = self.directory.find_policy_by_number(args.policy_number)
        if policy is None:
            return {"found": False, "message": f"No policy found with number {args.policy_number}"}

        lookup = self.directory.find_customer_by_policy(policy)
        return {
            "found": True,
            "source": lookup.source,
            "customer": lookup.to_dict(),
            "policy": {
                "policy_number": policy.policy_number,
                "coverage_type": policy.coverage_type,
                "vehicle_make": policy.vehicle_make,
                "vehicle_model": policy.vehicle_model,
                "vehicle_year": policy.vehicle_year,
            },
        }

    def _find_policy_by_phone(self, args: PhoneLookupArgs) -> Dict[str, Any]:
        return self._policy_matches(self.directory.find_policies_by_phone(args.phone_number), "phone number")

    def _find_policy_by_name(self, args: NameLookupArgs) -> Dict[str, Any]:
        return self._policy_matches(self.directory.find_policies_by_name(args.holder_name), "name")

    def _get_policy_coverage(self, args: PolicyNumberArgs) -> Dict[str, Any]:
        policy = self.directory.find_policy_by_number(args.policy_number)
        if policy is None:
            return {"found": False, "message": f"No policy found with number {args.policy_number}"}

        result = {
            "found": True,
            "policy_number": policy.policy_number,
            "coverage_type": policy.coverage_type,
        }
        result.update(policy.coverage_flags())
        result["holder"] = {
            "name": policy.holder_name,
            "phone": policy.holder_phone,
            "email": policy.holder_email,
        }
        result["vehicle"] = {
            "make": policy.vehicle_make,
            "model": policy.vehicle_model,
            "year": policy.vehicle_year,
        }
        return result

    def _record_coverage_decision(self, args: RecordCoverageDecisionArgs) -> Dict[str, Any]:
        claim = self._claim()
        self._guard(claim, ClaimStage.COVERAGE_CHECK, args.user_confirmed)

        policy = self.directory.find_policy_by_number(claim.policy_number)
        if policy is None:
            return _error(
                f"Policy {claim.policy_number} was not found; confirm the policy number with the driver"
            )

        decision = evaluate_coverage(policy.coverage_flags(), args.services_needed)
        overridden = args.is_covered != decision.is_covered
        if overridden:
            logger.warning(
                f"Coverage assessment for claim {self.claim_id} disagreed with policy rules "
                f"(model={args.is_covered}, rules={decision.is_covered}); using rules"
            )

        self.store.update(self.claim_id, {
            "is_covered": decision.is_covered,
            "coverage_details": decision.to_details(),
            "status": ClaimStage.COVERAGE_CHECK,
        })
        log_audit_event(
            "coverage_decision_recorded",
            actor_id=self.claim_id,
            actor_type="assistant",
            details={"is_covered": decision.is_covered, "services_needed": decision.services_needed},
        )
        return {
            "success": True,
            "is_covered": decision.is_covered,
            "services_needed": decision.services_needed,
            "services_covered": decision.services_covered,
            "services_not_covered": decision.services_not_covered,
            "explanation": decision.explanation,
            "status": ClaimStage.COVERAGE_CHECK.value,
            "assessment_corrected": overridden,
        }

    def _get_available_providers(self, args: ServiceTypeArgs) -> Dict[str, Any]:
        canonical = normalize_service(args.service_type)
        tag = PROVIDER_TAGS[canonical] if canonical else provider_tag_for(args.service_type)
        if tag is None:
            return _error(f"Unknown service type: {args.service_type}")

        providers = self.directory.list_providers_by_service_type(tag)
        if not providers:
            return {"found": False, "message": f"No providers available for {args.service_type}"}
        return {
            "found": True,
            "service_type": canonical.value if canonical else args.service_type,
            "providers": [p.to_dict() for p in providers],
        }

    def _arrange_services(self, args: ArrangeServicesArgs) -> Dict[str, Any]:
        claim = self._claim()

        if stage_index(claim.stage) >= stage_index(ClaimStage.ARRANGING_SERVICES) and claim.arranged_services:
            logger.info(f"Services already arranged for claim {self.claim_id}; not dispatching again")
            return {
                "success": True,
                "already_arranged": True,
                "arranged_services": list(claim.arranged_services),
                "notifications_created": 0,
                "notification_channels": [],
            }

        self._guard(claim, ClaimStage.ARRANGING_SERVICES, args.user_confirmed)

        covered = set((claim.coverage_details or {}).get("services_covered") or [])
        arranged: List[Dict[str, Any]] = []
        failed: List[Dict[str, Any]] = []
        seen = set()

        for request in args.services_to_arrange:
            service_type = normalize_service(request.service_type)
            if service_type is None:
                failed.append({"service_type": request.service_type, "reason": "Unknown service type"})
                continue
            if service_type in seen:
                continue
            seen.add(service_type)

            if service_type.value not in covered:
                failed.append({"service_type": service_type.value, "reason": "Not covered by the policy"})
                continue

            tag = PROVIDER_TAGS[service_type]
            if request.provider_id:
                provider = self.directory.get_provider(request.provider_id)
                if provider is None or not provider.offers(tag):
                    failed.append({
                        "service_type": service_type.value,
                        "reason": f"Provider {request.provider_id} cannot provide this service",
                    })
                    continue
            else:
                provider = self.directory.best_provider(tag)
                if provider is None:
                    failed.append({"service_type": service_type.value, "reason": "No available provider"})
                    continue

            dispatch = self.store.record_service(self.claim_id, service_type, provider)
            arranged.append({
                "service_id": dispatch.id,
                "service_type": service_type.value,
                "provider_id": provider.id,
                "provider_name": provider.name,
                "provider_phone": provider.phone,
                "provider_address": provider.address,
                "provider_rating": provider.rating,
                "estimated_arrival": dispatch.estimated_arrival,
                "status": dispatch.status,
            })

        if not arranged:
            logger.warning(f"No services could be arranged for claim {self.claim_id}: {failed}")
            return _error("No services could be arranged", failed_services=failed)

        primary = next(
            (s for s in arranged if s["service_type"] == ServiceType.TOW_TRUCK.value),
            arranged[0],
        )
        self.store.update(self.claim_id, {
            "arranged_services": list(claim.arranged_services or []) + arranged,
            "status": ClaimStage.ARRANGING_SERVICES,
            "is_covered": True,
            "nearest_garage": primary["provider_name"],
        })

        channels = []
        if claim.driver_phone:
            channels.append(("sms", claim.driver_phone))
        if claim.driver_email:
            channels.append(("email", claim.driver_email))

        message = args.notification_message.strip() or build_notification_message(claim, arranged)
        notifications = self.store.queue_notifications(self.claim_id, channels, message)
        self.notifications_created.extend(n.to_dict() for n in notifications)

        log_audit_event(
            "services_arranged",
            actor_id=self.claim_id,
            actor_type="assistant",
            details={
                "services": [s["service_type"] for s in arranged],
                "failed": [f["service_type"] for f in failed],
                "notifications": len(notifications),
            },
        )

        result = {
            "success": True,
            "arranged_services": arranged,
            "notifications_created": len(notifications),
            "notification_channels": [channel for channel, _ in channels],
            "status": ClaimStage.ARRANGING_SERVICES.value,
        }
        if failed:
            result["failed_services"] = failed
        return result

    def _complete_claim(self, args: CompleteClaimArgs) -> Dict[str, Any]:
        claim = self._claim()
        if claim.stage == ClaimStage.COMPLETED:
            return {"success": True, "status": ClaimStage.COMPLETED.value, "already_completed": True}

        self._guard(claim, ClaimStage.COMPLETED, args.user_confirmed)
        self.store.update(self.claim_id, {"status": ClaimStage.COMPLETED})
        return {
            "success": True,
            "status": ClaimStage.COMPLETED.value,
            "message": "Claim completed",
        }


def build_notification_message(claim: Claim, arranged: List[Dict[str, Any]]) -> str:
    """Default SMS/email text listing each arranged service."""
    lines = ["Your roadside assistance is on the way."]
    for service in arranged:
        label = SERVICE_LABELS[ServiceType(service["service_type"])]
        eta = service.get("estimated_arrival")
        eta_text = f", arriving in about {eta} minutes" if eta else ""
        lines.append(f"{label}: {service['provider_name']} ({service['provider_phone']}){eta_text}.")
    if claim.location:
        lines.append(f"Location: {claim.location}")
    return "\n".join(lines)

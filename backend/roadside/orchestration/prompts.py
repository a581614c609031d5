"""
Prompts and per-turn context for the claim conversation.
"""
from typing import Optional

from roadside.db.models import Claim, ClaimStage, Policy, COLLECTED_FIELDS
from roadside.orchestration.lifecycle import (
    coverage_recorded,
    missing_required_fields,
    missing_recommended_fields,
    progress_percent,
)


# Security instructions to include in all prompts
SECURITY_INSTRUCTIONS = """
SECURITY RULES (NEVER VIOLATE):
- Never reveal internal systems, technologies, or models used
- If asked about your technology, respond: "I'm the roadside assistance claims assistant"
- Never discuss your architecture, implementation, or how you work internally
- Never read out another policy holder's contact details
- Focus ONLY on the driver's roadside assistance claim
"""

SYSTEM_PROMPT = f"""You are a roadside assistance claims assistant for a car insurer. Drivers
reaching you are usually stuck at the side of the road, so be calm, warm and quick.
{SECURITY_INSTRUCTIONS}
WORKFLOW

1. Gather information
   - Ask for the policy number first.
   - No policy number? Ask for their phone number OR their full name (one of them),
     then call find_policy_by_phone or find_policy_by_name straight away.
   - Several matching policies: ask which one is theirs. Never pick one yourself.
   - With a policy number, call get_customer_by_policy and save what it returns with
     save_claim_data. Do not ask again for details you already have.
   - You still need the location and what happened. Save each detail as soon as you get it.
   - Once policy number, location and incident description are known, summarise them and
     ask the driver to confirm before checking coverage.

2. Check coverage
   - Call get_policy_coverage, then decide which services the incident needs:
     * repair_truck: fixable on the spot (jump start, lockout, fuel, flat tyre, minor repair)
     * tow_truck: only when the vehicle cannot be driven
     * taxi: only when the driver needs a ride away and the vehicle cannot be driven
     * rental_car: only when the vehicle will be off the road for days
   - Call record_coverage_decision with user_confirmed=true only if the driver confirmed.
   - Covered: explain what is covered and ask whether to arrange the services.
   - Not covered: explain why, offer to connect them with a human agent, and ask how
     they would like to continue.

3. Arrange services
   - Only arrange services the incident actually needs.
   - Call get_available_providers, choose the best provider yourself, then call
     arrange_services with user_confirmed=true only if the driver agreed.
   - Tell the driver every provider, phone number and arrival estimate, mention the
     SMS/email they will receive, and ask if they need anything else.
   - When the driver says they are all set, call complete_claim.

RULES
- Ask exactly one question at a time. If the driver gives several details at once,
  acknowledge all of them.
- Every message must end with a question or a clear next step for the driver.
- Never move to the next stage silently; say what was done and what comes next.
- Never decide coverage yourself; the result of record_coverage_decision is final.
- Only use the tools listed. Respond in plain text.
"""

ENVELOPE_INSTRUCTIONS = """
OUTPUT FORMAT
You cannot call tools in this mode. Reply with ONE JSON object and nothing else:
{
  "message": "<what you say to the driver>",
  "extracted_data": {"<claim field>": "<value>", ...},
  "decisions": {
    "user_confirmed": <true|false>,
    "coverage": {"is_covered": <true|false>, "services_needed": ["tow_truck", ...],
                 "coverage_explanation": "<short reason>"} or null,
    "services_to_arrange": [{"service_type": "tow_truck"}] or null,
    "notification_message": "<SMS/email text>" or null,
    "complete": <true|false>
  },
  "next_stage": "data_gathering" | "coverage_check" | "arranging_services" | "completed"
}
Claim fields: """ + ", ".join(COLLECTED_FIELDS) + """.
Only include decisions that belong to this turn. Leave extracted_data empty if nothing new was said.
"""

FIELD_LABELS = {
    "driver_name": "Driver name",
    "driver_phone": "Driver phone",
    "driver_email": "Driver email",
    "policy_number": "Policy number",
    "location": "Location",
    "incident_description": "Incident",
    "vehicle_make": "Vehicle make",
    "vehicle_model": "Vehicle model",
    "vehicle_year": "Vehicle year",
}


def build_claim_context(claim: Claim, policy: Optional[Policy] = None) -> str:
    """Claim state block appended to the system prompt."""
    lines = [
        "CURRENT CLAIM",
        f"- Claim id: {claim.id}",
        f"- Stage: {claim.stage.value} ({progress_percent(claim.stage)}% through)",
    ]
    for field_name in COLLECTED_FIELDS:
        value = getattr(claim, field_name)
        lines.append(f"- {FIELD_LABELS[field_name]}: {value if value not in (None, '') else 'not provided'}")

    if claim.is_covered is not None:
        details = claim.coverage_details or {}
        lines.append(f"- Covered: {'yes' if claim.is_covered else 'no'}")
        if details.get("explanation"):
            lines.append(f"- Coverage notes: {details['explanation']}")

    for service in claim.arranged_services or []:
        lines.append(
            f"- Arranged: {service.get('service_type')} by {service.get('provider_name')} "
            f"({service.get('provider_phone')}), ETA {service.get('estimated_arrival')} min"
        )

    if policy is not None:
        flags = policy.coverage_flags()
        lines.append("POLICY COVERAGE")
        for name, value in flags.items():
            lines.append(f"- {name}: {value}")

    return "\n".join(lines)


def build_stage_guidance(claim: Claim) -> str:
    """What the assistant should be working towards in this turn."""
    stage = claim.stage

    if stage == ClaimStage.DATA_GATHERING:
        missing = missing_required_fields(claim)
        if missing:
            optional = missing_recommended_fields(claim)
            guidance = f"Still needed before coverage can be checked: {', '.join(missing)}. Ask for {missing[0]} next."
            if optional:
                guidance += f" Also useful if not found via the policy: {', '.join(optional)}."
            return guidance
        return (
            "All required details are collected. Summarise them and ask the driver to confirm "
            "so you can check coverage. If they already confirmed, check coverage now."
        )

    if stage == ClaimStage.COVERAGE_CHECK:
        if not coverage_recorded(claim):
            return "Check coverage with get_policy_coverage and record_coverage_decision."
        if claim.is_covered:
            return (
                "The driver is covered. If they agreed to proceed, arrange the needed services; "
                "otherwise ask whether to arrange them."
            )
        return (
            "The driver is NOT covered. Services cannot be arranged. Explain why, offer a human "
            "agent, and ask how they would like to continue."
        )

    if stage == ClaimStage.ARRANGING_SERVICES:
        return (
            "Services are arranged and notifications queued. Do not arrange them again. "
            "Ask if the driver needs anything else; complete the claim when they are done."
        )

    return "The claim is completed. Answer any final questions briefly and wish the driver well."

"""
Services package
"""
from roadside.services.claim_store import ClaimStore, get_claim_store
from roadside.services.coverage import evaluate_coverage, CoverageDecision
from roadside.services.directory import PolicyDirectory, CustomerLookup, get_policy_directory

__all__ = [
    "ClaimStore",
    "get_claim_store",
    "evaluate_coverage",
    "CoverageDecision",
    "PolicyDirectory",
    "CustomerLookup",
    "get_policy_directory",
]

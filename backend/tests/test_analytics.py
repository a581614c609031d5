"""
Tests for the claims dashboard figures.
"""

from datetime import datetime

from roadside.db.models import ClaimStage
from roadside.services.analytics import compute_claim_stats


class TestClaimStats:

    def test_empty(self, db):
        stats = compute_claim_stats(db)
        assert stats["total_claims"] == 0
        assert stats["average_resolution_minutes"] == 0
        assert stats["recent_claims"] == []

    def test_resolution_time_ends_at_completion(self, db, store, new_claim):
        claim = store.load(new_claim.id)
        claim.created_at = datetime(2026, 1, 1, 10, 0)
        claim.status = ClaimStage.COMPLETED
        claim.timeline = [
            {"status": "data_gathering", "timestamp": "2026-01-01T10:00:00", "actor": "system", "notes": ""},
            {"status": "completed", "timestamp": "2026-01-01T10:30:00", "actor": "assistant", "notes": ""},
        ]
        # Driver kept chatting long after completion
        claim.updated_at = datetime(2026, 1, 1, 14, 0)
        db.commit()

        stats = compute_claim_stats(db)
        assert stats["completed_claims"] == 1
        assert stats["average_resolution_minutes"] == 30

    def test_open_claims_not_in_resolution_time(self, db, store, new_claim):
        stats = compute_claim_stats(db)
        assert stats["active_claims"] == 1
        assert stats["average_resolution_minutes"] == 0

"""
Claim Conversation Service - runs one chat turn through the LangGraph turn graph
"""
import threading
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roadside.core.exceptions import ClaimNotFoundError, TurnProcessingError
from roadside.core.langfuse_handler import flush_langfuse
from roadside.core.logging import get_logger
from roadside.orchestration import get_llm, run_turn_graph
from roadside.orchestration.tools import ToolExecutor
from roadside.services.claim_store import ClaimStore
from roadside.services.db_utils import DatabaseOperationError

logger = get_logger(__name__)

STORE_UNAVAILABLE_MESSAGE = (
    "We couldn't save your claim just now. Please try sending your message again in a moment."
)
ASSISTANT_UNAVAILABLE_MESSAGE = (
    "I'm having trouble responding right now. Please try sending your message again in a moment."
)


# In-process turn serialization; the row lock covers other processes.
# An entry lives only while some turn holds a reference to its lock.
_claim_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_claim_locks_guard = threading.Lock()


def _claim_lock(claim_id: str) -> threading.Lock:
    with _claim_locks_guard:
        lock = _claim_locks.get(claim_id)
        if lock is None:
            lock = threading.Lock()
            _claim_locks[claim_id] = lock
        return lock


@dataclass
class TurnResult:
    """Outcome of a committed turn."""
    claim_id: str
    message: str
    status: str
    claim: Dict[str, Any]
    notifications: List[Dict[str, Any]] = field(default_factory=list)
    tool_trace: List[Dict[str, Any]] = field(default_factory=list)
    fallback_reason: Optional[str] = None


def model_history(entries: Optional[List[dict]]) -> List[dict]:
    """Transcript entries as model context; human-agent replies count as assistant turns."""
    history = []
    for entry in entries or []:
        role = entry.get("role")
        if entry.get("author") == "human_agent":
            role = "assistant"
        if role not in ("user", "assistant"):
            continue
        history.append({"role": role, "content": entry.get("content") or ""})
    return history


class ClaimConversationService:
    """Service for processing driver messages on a claim."""

    def __init__(self, db: Session, llm: Optional[BaseChatModel] = None):
        self.db = db
        self.llm = llm
        self.store = ClaimStore(db)

    def open_claim(self, greeting: Optional[str] = None) -> Dict[str, Any]:
        """Create a claim seeded with the greeting and return its snapshot."""
        try:
            claim = self.store.create(greeting=greeting)
            self.db.commit()
        except (DatabaseOperationError, SQLAlchemyError) as e:
            self.db.rollback()
            logger.error(f"Failed to open claim: {e}")
            raise TurnProcessingError(str(e), status_code=503, user_message=STORE_UNAVAILABLE_MESSAGE)
        return self.store.snapshot(claim)

    def process_turn(
        self,
        claim_id: str,
        message: str,
        conversation_history: Optional[List[dict]] = None,
    ) -> TurnResult:
        """
        Process one driver message.

        Turns on the same claim run one at a time. Everything the turn writes
        (fields, stage, services, notifications, transcript) commits together
        or not at all.

        Args:
            claim_id: Claim to continue
            message: Driver's message
            conversation_history: Optional transcript to show the model instead
                of the stored one; the stored transcript is still what grows

        Raises:
            ClaimNotFoundError: unknown claim id
            TurnProcessingError: the turn failed and nothing was saved
        """
        claim_id = str(claim_id)
        lock = _claim_lock(claim_id)
        with lock:
            try:
                claim = self.store.load(claim_id, for_update=True)
                history = model_history(
                    conversation_history if conversation_history is not None else claim.conversation_history
                )

                executor = ToolExecutor(self.db, claim_id, store=self.store)
                llm = self.llm or get_llm()

                logger.info(f"Processing turn on claim {claim_id} (stage {claim.stage.value})")
                result = run_turn_graph(llm, executor, claim_id, message, history)

                reply = result["ai_response"]
                self.store.append_transcript(claim_id, [
                    {"role": "user", "content": message},
                    {"role": "assistant", "content": reply},
                ])
                self.db.commit()
            except ClaimNotFoundError:
                self.db.rollback()
                raise
            except (DatabaseOperationError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.error(f"Store failure during turn on claim {claim_id}: {e}")
                raise TurnProcessingError(str(e), status_code=503, user_message=STORE_UNAVAILABLE_MESSAGE)
            except Exception as e:
                self.db.rollback()
                logger.exception(f"Turn failed on claim {claim_id}: {e}")
                raise TurnProcessingError(str(e), status_code=502, user_message=ASSISTANT_UNAVAILABLE_MESSAGE)
            finally:
                flush_langfuse()

        claim = self.store.load(claim_id)
        return TurnResult(
            claim_id=claim_id,
            message=reply,
            status=claim.stage.value,
            claim=self.store.snapshot(claim),
            notifications=executor.notifications_created,
            tool_trace=result.get("tool_trace") or [],
            fallback_reason=result.get("fallback_reason"),
        )


# Factory function for dependency injection
def get_conversation_service(db: Session, llm: Optional[BaseChatModel] = None) -> ClaimConversationService:
    """Get conversation service instance."""
    return ClaimConversationService(db, llm)

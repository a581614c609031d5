import sys
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent / "backend"
sys.path.append(str(backend_path))

from roadside.core.exceptions import TurnProcessingError
from roadside.db import SessionLocal
from roadside.services.chat import get_conversation_service

db = SessionLocal()
service = get_conversation_service(db)

if len(sys.argv) > 1:
    claim_id = sys.argv[1]
    print("Continuing claim", claim_id)
else:
    snapshot = service.open_claim()
    claim_id = snapshot["id"]
    print("Opened claim", claim_id)
    print("Assistant:", snapshot["conversation_history"][0]["content"])

try:
    while True:
        message = input("You: ").strip()
        if message in ("", "quit", "exit"):
            break
        try:
            result = service.process_turn(claim_id, message)
        except TurnProcessingError as e:
            print("Turn failed:", e.detail)
            continue
        print("Assistant:", result.message)
        print(f"  [stage={result.status} tools={[t['tool'] for t in result.tool_trace]}]")
        if result.fallback_reason:
            print("  [fallback:", result.fallback_reason + "]")
except (KeyboardInterrupt, EOFError):
    pass
finally:
    db.close()

"""
Complete chat application example.

Demonstrates:
- create_app() with an explicitly built ServiceContainer
- Plugging in a ChatBackend and a Ledger
- SQLite persistence for rate limits and chat history
"""

from typing import Any

from starlette.requests import Request

from aether_pipeline import ServiceContainer, Settings
from aether_pipeline.app import create_app
from aether_pipeline.services import ChatReply, ChatTurn, LedgerReceipt


class EchoBackend:
    """Stands in for a generative AI client."""

    async def generate(self, message: str, history: list[ChatTurn]) -> ChatReply:
        return ChatReply(
            text=f"You said: {message} ({len(history)} earlier turns)",
            model="echo-1",
            tokens_used=len(message.split()),
            cost=0.0,
        )


class PrintLedger:
    """Stands in for a distributed-ledger client."""

    def __init__(self) -> None:
        self._sequence = 0

    async def record(self, user_id: str, payload: dict[str, Any]) -> LedgerReceipt:
        self._sequence += 1
        print(f"ledger: {user_id} {payload}")
        return LedgerReceipt(
            transaction_id=f"0.0.1001@{self._sequence}",
            consensus_timestamp=f"{self._sequence}.000000000",
            status="SUCCESS",
            cost=0.0001,
            carbon_impact=-0.2,
        )


async def resolve_session(request: Request) -> str | None:
    return request.cookies.get("session_user")


# AETHER_DATABASE_URL, AETHER_LOG_FORMAT, ... override the defaults
app = create_app(
    ServiceContainer(
        Settings(),
        session_resolver=resolve_session,
        chat_backend=EchoBackend(),
        ledger=PrintLedger(),
    )
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # curl -X POST -H "Content-Type: application/json" \
    #   -d '{"message": "hello"}' http://localhost:8000/api/chat
    # curl -b "session_user=alice" http://localhost:8000/api/chat/history
    # curl -b "session_user=alice" http://localhost:8000/api/metrics
    # curl -X DELETE -b "session_user=alice" "http://localhost:8000/api/chat/history?days=7"

import json
import time
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

class EventType(str, Enum):
    THOUGHT = "thought"
    ACTION = "action"
    PAYMENT = "payment"
    DATA = "data"
    RECOMMENDATION = "recommendation"
    ERROR = "error"

@dataclass
class AgentEvent:
    type: EventType
    content: str
    metadata: Optional[Dict[str, Any]] = None
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type.value, "content": self.content, "timestamp": self.timestamp}
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

class EventBroadcaster:
    """Fan-out of one session's events to its attached observers"""

    def __init__(self):
        self.connected_clients: List[Any] = []
        self.event_history: List[AgentEvent] = []

    @property
    def client_count(self) -> int:
        return len(self.connected_clients)

    async def add_client(self, client, replay: bool = True):
        """Attach an observer, catching it up on what already happened"""
        self.connected_clients.append(client)
        logger.info(f"Observer attached. Total observers: {self.client_count}")

        if replay:
            for event in list(self.event_history):
                if not await self._send(client, json.dumps(event.to_dict())):
                    self.remove_client(client)
                    break

    def remove_client(self, client):
        if client in self.connected_clients:
            self.connected_clients.remove(client)
            logger.info(f"Observer detached. Total observers: {self.client_count}")

    async def broadcast(self, event: AgentEvent):
        """Send to every observer; a failed send drops that observer"""
        self.event_history.append(event)
        message = json.dumps(event.to_dict(), default=str)

        for client in list(self.connected_clients):
            if not await self._send(client, message):
                self.remove_client(client)

    async def emit(self, event_type: EventType, content: str, metadata: Optional[Dict[str, Any]] = None):
        await self.broadcast(AgentEvent(type=event_type, content=content, metadata=metadata))

    async def _send(self, client, message: str) -> bool:
        try:
            await client.send_text(message)
            return True
        except Exception as e:
            logger.debug(f"Error sending to observer: {e}")
            return False

    def get_event_history(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self.event_history]

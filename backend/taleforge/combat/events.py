"""
Combat presentation channel.

Core -> presentation: typed events delivered to per-subscriber queues and an
optional sink. Presentation -> core: animation / victory acknowledgements the
orchestrator awaits with a watchdog timeout.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class CombatEventType(str, Enum):
    INITIATIVE_ROLLED = "initiative_rolled"
    TURN_CHANGED = "turn_changed"
    COMBATANT_SPAWNED = "combatant_spawned"
    DAMAGE_TAKEN = "damage_taken"
    HEAL_RECEIVED = "heal_received"
    STATUS_UPDATED = "status_updated"
    ACTION_EXECUTED = "action_executed"
    TARGET_SPOTLIGHT = "target_spotlight"
    TARGET_CLEARED = "target_cleared"
    ROLL_REQUESTED = "roll_requested"
    NARRATION = "narration"
    COMBATANT_DEFEATED = "combatant_defeated"
    VICTORY = "victory"
    COMBAT_ENDED = "combat_ended"
    ERROR = "error"


@dataclass
class CombatEvent:
    type: CombatEventType
    actor_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


EventSink = Callable[[CombatEvent], Optional[Awaitable[None]]]

VICTORY_KEY = "__victory__"


class CombatChannel:
    """In-memory event stream plus acknowledgement gates."""

    def __init__(self, sink: Optional[EventSink] = None, history_size: int = 200) -> None:
        self.sink = sink
        self._queues: List[asyncio.Queue] = []
        self._pending: Dict[str, asyncio.Future] = {}
        self.history: Deque[CombatEvent] = deque(maxlen=history_size)

    # ===== core -> presentation =====

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    async def publish(self, event: CombatEvent) -> None:
        self.history.append(event)
        for queue in list(self._queues):
            queue.put_nowait(event)
        if self.sink is not None:
            result = self.sink(event)
            if asyncio.iscoroutine(result):
                await result

    async def emit(self, event_type: CombatEventType, actor_id: Optional[str] = None, **payload: Any) -> CombatEvent:
        event = CombatEvent(type=event_type, actor_id=actor_id, payload=payload)
        await self.publish(event)
        return event

    def events_of(self, event_type: CombatEventType) -> List[CombatEvent]:
        return [event for event in self.history if event.type == event_type]

    # ===== presentation -> core =====

    def expect_animation(self, actor_id: str) -> asyncio.Future:
        """Register the gate before emitting so an immediate acknowledgement is never lost."""
        return self._expect(actor_id)

    def acknowledge_animation(self, actor_id: Optional[str] = None) -> bool:
        """Resolve the gate for ``actor_id`` (any pending actor when omitted)."""
        if actor_id is None:
            keys = [key for key in self._pending if key != VICTORY_KEY]
            actor_id = keys[0] if keys else None
        if actor_id is None:
            return False
        return self._resolve(actor_id)

    def expect_victory(self) -> asyncio.Future:
        return self._expect(VICTORY_KEY)

    def acknowledge_victory(self) -> bool:
        return self._resolve(VICTORY_KEY)

    async def wait(self, gate: asyncio.Future, timeout: Optional[float]) -> bool:
        """
        Wait for a gate or the watchdog.

        Returns True when acknowledged, False when the watchdog expired; an
        expiry counts as an implicit acknowledgement and is never an error.
        """
        try:
            done, _ = await asyncio.wait({gate}, timeout=timeout)
            if done:
                return True
            gate.cancel()
            return False
        finally:
            for key, pending in list(self._pending.items()):
                if pending is gate:
                    del self._pending[key]

    def _expect(self, key: str) -> asyncio.Future:
        previous = self._pending.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
        gate = asyncio.get_running_loop().create_future()
        self._pending[key] = gate
        return gate

    def _resolve(self, key: str) -> bool:
        gate = self._pending.get(key)
        if gate is None or gate.done():
            return False
        gate.set_result(True)
        return True

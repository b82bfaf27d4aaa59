"""
Routing Event Log

Records routing decisions (ROUTED, FALLBACK, COOLDOWN, EXHAUSTED) as log lines
and keeps a bounded in-memory history for inspection. When Langfuse keys are
configured the events are mirrored to Langfuse as well; the mirror is
best-effort and never affects routing.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Union

from virtual_router.settings import RouterSettings

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 1000


def _iso(epoch_ms: float) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc).isoformat()


class RoutingEventLog:
    """
    Structured routing events

    Args:
        settings: Router settings; Langfuse mirroring is enabled when both keys are set
        history_limit: Number of recent events kept in memory
    """

    def __init__(self, settings: Optional[RouterSettings] = None, history_limit: int = HISTORY_LIMIT):
        self.history: Deque[Dict[str, Any]] = deque(maxlen=history_limit)
        self.lf_client = None

        if settings is not None and settings.langfuse_enabled:
            try:
                from langfuse import Langfuse

                self.lf_client = Langfuse(
                    public_key=settings.langfuse_public_key,
                    secret_key=settings.langfuse_secret_key,
                    host=settings.langfuse_host,
                )
                logger.info("Langfuse client initialized for routing event mirroring")
            except Exception as e:
                self.lf_client = None
                logger.warning(f"Langfuse unavailable, routing events stay local: {e}")

    # ---------- emitters ----------
    def routed(self, model_id: str, target_key: str, status: Optional[int], latency_ms: float):
        logger.info(f"ROUTED {model_id} -> {target_key} ({status}) {latency_ms:.0f}ms")
        self._record("routed", {
            "model_id": model_id,
            "target": target_key,
            "status": status,
            "latency_ms": latency_ms,
        })

    def fallback(
        self,
        model_id: str,
        from_key: str,
        status: Union[int, str, None],
        to_key: Optional[str]
    ):
        to = f"-> {to_key}" if to_key else "(no more targets)"
        logger.info(f"FALLBACK {model_id}: {from_key} ({status if status is not None else 'error'}) {to}")
        self._record("fallback", {
            "model_id": model_id,
            "from": from_key,
            "status": status,
            "to": to_key,
        })

    def cooldown(self, target_key: str, until_ms: float):
        logger.info(f"COOLDOWN {target_key} until {_iso(until_ms)}")
        self._record("cooldown", {"target": target_key, "until": _iso(until_ms)})

    def exhausted(self, model_id: str):
        logger.warning(f"EXHAUSTED {model_id}: all targets failed")
        self._record("exhausted", {"model_id": model_id})

    def recent(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        events = list(self.history)
        return events[-limit:] if limit else events

    # ---------- low-level helpers ----------
    def _record(self, event_type: str, payload: Dict[str, Any]):
        entry = {"type": event_type, "timestamp": datetime.now(timezone.utc).isoformat(), **payload}
        self.history.append(entry)
        self._emit_langfuse_event(event_type, payload)

    def _emit_langfuse_event(self, event_type: str, payload: Dict[str, Any]):
        if self.lf_client is None:
            return
        name = f"virtual_router.{event_type}"
        try:
            # SDK v3 exposes create_event, v2 exposes event.
            if hasattr(self.lf_client, "create_event"):
                self.lf_client.create_event(name=name, metadata=payload)
            elif hasattr(self.lf_client, "event"):
                self.lf_client.event(name=name, metadata=payload)
        except Exception as e:
            logger.debug(f"Langfuse mirror failed (non-fatal): {e}")

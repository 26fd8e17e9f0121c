"""
Signal envelope construction and parsing.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from strangerchat.models.signal import SignalEnvelope, SignalPayload

logger = logging.getLogger(__name__)


def build_envelope(target: Optional[str], signal: SignalPayload) -> dict[str, Any]:
    """Build an outbound `signal` payload as a dict ready for Socket.IO emit."""
    envelope = SignalEnvelope(target=target, signal=signal)
    return envelope.model_dump(exclude_none=True)


def parse_envelope(raw: Any) -> Optional[SignalEnvelope]:
    """Parse an inbound `signal` payload. Returns None if invalid."""
    if not isinstance(raw, dict):
        return None
    try:
        return SignalEnvelope.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Discarding malformed signal envelope: {e.error_count()} error(s)")
        return None

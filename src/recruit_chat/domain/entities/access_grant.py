from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class AccessGrant:
    """Permission for ``payer_id`` to message ``target_id``, bought once."""

    payer_id: int
    target_id: int
    cost: int
    granted_at: datetime

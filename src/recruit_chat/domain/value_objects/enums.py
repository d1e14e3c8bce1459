from __future__ import annotations

from enum import StrEnum


class AccountRole(StrEnum):
    RECRUITER = "recruiter"
    CANDIDATE = "candidate"
    ADMIN = "admin"


class TransportState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class DeliveryState(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class AccessReason(StrEnum):
    SELF = "SELF"
    HAS_APPLICATION = "HAS_APPLICATION"
    PROFILE_UNLOCKED = "PROFILE_UNLOCKED"
    UNLOCKED_BY_COUNTERPART = "UNLOCKED_BY_COUNTERPART"
    NO_ACCESS = "NO_ACCESS"


class ContextType(StrEnum):
    APPLICATION = "APPLICATION"
    PROFILE_UNLOCK = "PROFILE_UNLOCK"


class TransactionCategory(StrEnum):
    PROFILE_UNLOCK = "PROFILE_UNLOCK"

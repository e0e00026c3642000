from .base import BaseModel, TimeStampedModel, UUIDModel, VersionedModel
from .sequences import NumberSequence
from .notifications import Notification

__all__ = [
    "BaseModel",
    "TimeStampedModel",
    "UUIDModel",
    "VersionedModel",
    "Notification",
    # Auto Number
    "NumberSequence",
]

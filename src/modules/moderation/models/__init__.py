from src.modules.moderation.models.moderation_record import ModerationRecord

__all__ = [
    "ModerationRecord",
]

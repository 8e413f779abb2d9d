from src.modules.moderation.repositories.moderation_repo import ModerationRepository

__all__ = [
    "ModerationRepository",
]

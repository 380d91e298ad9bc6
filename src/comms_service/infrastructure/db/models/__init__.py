"""Import all models so Alembic can discover them via Base.metadata."""
from comms_service.infrastructure.db.models.conversation import ConversationModel
from comms_service.infrastructure.db.models.message import MessageModel
from comms_service.infrastructure.db.models.notification import (
    NotificationModel,
    NotificationPreferencesModel,
)

__all__ = [
    "ConversationModel",
    "MessageModel",
    "NotificationModel",
    "NotificationPreferencesModel",
]

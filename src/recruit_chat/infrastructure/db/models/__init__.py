"""Import all models so Alembic can discover them via Base.metadata."""
from recruit_chat.infrastructure.db.models.access_grant import AccessGrantModel
from recruit_chat.infrastructure.db.models.account import AccountModel, CreditTransactionModel
from recruit_chat.infrastructure.db.models.application_link import ApplicationLinkModel
from recruit_chat.infrastructure.db.models.conversation import ConversationModel
from recruit_chat.infrastructure.db.models.message import MessageModel

__all__ = [
    "AccessGrantModel",
    "AccountModel",
    "ApplicationLinkModel",
    "ConversationModel",
    "CreditTransactionModel",
    "MessageModel",
]

"""Database models."""
from marketplace.infra.db.models.user import UserModel
from marketplace.infra.db.models.wallet import WalletModel, TokenTransactionModel
from marketplace.infra.db.models.booking import (
    BookingModel,
    MonitorAssignmentModel,
    RoundRobinCounterModel,
)
from marketplace.infra.db.models.dispute import DisputeModel
from marketplace.infra.db.models.chat import MessageModel, ChatTemplateModel
from marketplace.infra.db.models.notification import NotificationModel

__all__ = [
    "UserModel",
    "WalletModel",
    "TokenTransactionModel",
    "BookingModel",
    "MonitorAssignmentModel",
    "RoundRobinCounterModel",
    "DisputeModel",
    "MessageModel",
    "ChatTemplateModel",
    "NotificationModel",
]

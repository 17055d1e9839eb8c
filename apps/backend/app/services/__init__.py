"""
Services package

Business logic services used by the API routers.
"""

from .budget_service import BudgetService
from .external_friend_service import ExternalFriendService, MergeRequestService
from .friendship_service import FriendshipService
from .installment_service import InstallmentService
from .notification_service import NotificationService
from .participant_service import TransactionParticipantService
from .share_redistribution_service import ShareRedistributionService
from .transaction_service import TransactionLifecycleService
from .user_directory import UserDirectory

__all__ = [
    "BudgetService",
    "ExternalFriendService",
    "FriendshipService",
    "InstallmentService",
    "MergeRequestService",
    "NotificationService",
    "ShareRedistributionService",
    "TransactionLifecycleService",
    "TransactionParticipantService",
    "UserDirectory",
]

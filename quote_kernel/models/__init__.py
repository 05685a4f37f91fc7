"""SQLAlchemy ORM models for the approval engine."""

from quote_kernel.models.approval import ApprovalActionModel, ApprovalRequestModel
from quote_kernel.models.quote import CustomerModel, QuoteModel
from quote_kernel.models.role_limit import RoleLimitModel
from quote_kernel.models.user import ProfileModel, UserRoleModel

__all__ = [
    "ApprovalRequestModel",
    "ApprovalActionModel",
    "QuoteModel",
    "CustomerModel",
    "RoleLimitModel",
    "ProfileModel",
    "UserRoleModel",
]

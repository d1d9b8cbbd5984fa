"""
Role Policy Table
Single place mapping each guarded action to the roles allowed to perform it
"""

from enum import Enum
from typing import Dict, FrozenSet

from src.models.user import UserRole


class Permission(str, Enum):
    """Guarded actions"""
    # Tiers
    SUPERVISOR_TIER = "supervisor_tier"
    MANAGER_TIER = "manager_tier"
    FINANCE_TIER = "finance_tier"
    ADMIN_TIER = "admin_tier"

    # Read bypasses
    VIEW_ALL_TRAVEL_REQUESTS = "view_all_travel_requests"
    VIEW_ALL_CLAIMS = "view_all_claims"
    VIEW_ANY_APPROVAL = "view_any_approval"
    VIEW_ANY_USER = "view_any_user"
    VIEW_ENTITY_AUDIT = "view_entity_audit"
    VIEW_ALL_BAILOUTS = "view_all_bailouts"

    # Mutations
    ADMIN_OVERRIDE_APPROVAL = "admin_override_approval"
    LOCK_TRAVEL_REQUEST = "lock_travel_request"
    CLOSE_TRAVEL_REQUEST = "close_travel_request"
    PAY_CLAIM = "pay_claim"
    APPROVE_BAILOUT_CHIEF = "approve_bailout_chief"
    APPROVE_BAILOUT_DIRECTOR = "approve_bailout_director"
    REJECT_BAILOUT = "reject_bailout"
    DISBURSE_BAILOUT = "disburse_bailout"
    MANAGE_USERS = "manage_users"
    MANAGE_DEPARTMENTS = "manage_departments"
    MANAGE_PROJECTS = "manage_projects"
    MANAGE_CHART_OF_ACCOUNTS = "manage_chart_of_accounts"
    MANAGE_NOTIFICATIONS = "manage_notifications"
    EDIT_ANY_ATTACHMENT = "edit_any_attachment"


_SUPERVISOR_AND_ABOVE = frozenset({
    UserRole.SUPERVISOR, UserRole.SALES_CHIEF, UserRole.MANAGER,
    UserRole.DIRECTOR, UserRole.FINANCE, UserRole.ADMIN,
})
_MANAGER_AND_ABOVE = frozenset({UserRole.MANAGER, UserRole.DIRECTOR, UserRole.FINANCE, UserRole.ADMIN})
_FINANCE = frozenset({UserRole.FINANCE, UserRole.ADMIN})
_ADMIN = frozenset({UserRole.ADMIN})
_LEADERSHIP = frozenset({UserRole.MANAGER, UserRole.DIRECTOR, UserRole.ADMIN})
_SALES_CHIEFS = frozenset({UserRole.SALES_CHIEF, UserRole.MANAGER, UserRole.DIRECTOR, UserRole.ADMIN})
_DIRECTORS = frozenset({UserRole.DIRECTOR, UserRole.ADMIN})


POLICY: Dict[Permission, FrozenSet[UserRole]] = {
    Permission.SUPERVISOR_TIER: _SUPERVISOR_AND_ABOVE,
    Permission.MANAGER_TIER: _MANAGER_AND_ABOVE,
    Permission.FINANCE_TIER: _FINANCE,
    Permission.ADMIN_TIER: _ADMIN,

    Permission.VIEW_ALL_TRAVEL_REQUESTS: _MANAGER_AND_ABOVE,
    Permission.VIEW_ALL_CLAIMS: _MANAGER_AND_ABOVE,
    Permission.VIEW_ANY_APPROVAL: _MANAGER_AND_ABOVE,
    Permission.VIEW_ANY_USER: _LEADERSHIP,
    Permission.VIEW_ENTITY_AUDIT: _MANAGER_AND_ABOVE,
    Permission.VIEW_ALL_BAILOUTS: _SALES_CHIEFS | _FINANCE,

    Permission.ADMIN_OVERRIDE_APPROVAL: _LEADERSHIP,
    Permission.LOCK_TRAVEL_REQUEST: _FINANCE,
    Permission.CLOSE_TRAVEL_REQUEST: _FINANCE,
    Permission.PAY_CLAIM: _FINANCE,
    Permission.APPROVE_BAILOUT_CHIEF: _SALES_CHIEFS,
    Permission.APPROVE_BAILOUT_DIRECTOR: _DIRECTORS,
    Permission.REJECT_BAILOUT: _SALES_CHIEFS,
    Permission.DISBURSE_BAILOUT: _FINANCE,
    Permission.MANAGE_USERS: _ADMIN,
    Permission.MANAGE_DEPARTMENTS: _ADMIN,
    Permission.MANAGE_PROJECTS: _MANAGER_AND_ABOVE,
    Permission.MANAGE_CHART_OF_ACCOUNTS: _ADMIN,
    Permission.MANAGE_NOTIFICATIONS: _ADMIN,
    Permission.EDIT_ANY_ATTACHMENT: _ADMIN,
}


def roles_for(permission: Permission) -> FrozenSet[UserRole]:
    """Roles granted a permission (empty when unknown)"""
    return POLICY.get(permission, frozenset())

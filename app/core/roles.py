"""
core/roles.py
-------------
Roles and the landing route each role is sent to after login.

super_admin  → /master     (platform console)
tenant_admin → /dashboard  (own tenant)
user         → /dashboard  (own tenant)
"""

from enum import Enum as PyEnum


class UserRole(str, PyEnum):
    super_admin = "super_admin"
    tenant_admin = "tenant_admin"
    user = "user"


class HomeRoute(str, PyEnum):
    master = "/master"
    dashboard = "/dashboard"


_HOME_ROUTES: dict[UserRole, HomeRoute] = {
    UserRole.super_admin: HomeRoute.master,
    UserRole.tenant_admin: HomeRoute.dashboard,
    UserRole.user: HomeRoute.dashboard,
}


def home_route_for(role: UserRole | str) -> HomeRoute:
    """Raises ValueError for an unknown role string."""
    return _HOME_ROUTES[UserRole(role)]

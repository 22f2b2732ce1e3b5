"""
RBAC dependencies for FastAPI routes
Role-based access control implemented as dependencies that run after authentication
"""
from fastapi import Depends, Request
from routers.auth.auth import get_current_user
from utils.exceptions import AuthorizationError
import logging

logger = logging.getLogger(__name__)

RESOURCES_FOR_ROLES = {
    'admin': {
        'admin': ['read', 'write', 'delete'],
        'categories': ['read', 'write', 'delete'],
        'products': ['read', 'write', 'delete'],
        'orders': ['read', 'write'],
        'orders/reports': ['read'],
        'sellers': ['read', 'write'],
        'sellers/reviews': ['read', 'write'],
        'carts': ['read', 'write', 'delete'],
        'wishlist': ['read', 'write', 'delete'],
    },
    'seller': {
        'categories': ['read'],
        'products': ['read'],
        'orders': ['read', 'write'],
        'orders/reports': [],
        'sellers': ['read', 'write'],  # Only their own store
        'sellers/catalog': ['read', 'write'],
        'sellers/reviews': ['read', 'write'],
        'carts': ['read', 'write', 'delete'],
        'wishlist': ['read', 'write', 'delete'],
    },
    'user': {
        'categories': ['read'],
        'products': ['read'],
        'orders': ['read', 'write'],  # Own orders only
        'orders/reports': [],
        'sellers': ['read', 'write'],  # Can open a store
        'sellers/reviews': ['read', 'write'],
        'carts': ['read', 'write', 'delete'],
        'wishlist': ['read', 'write', 'delete'],
    }
}

SELLER_CATALOG_SEGMENTS = {'my-products', 'my-stats', 'reports', 'bulk-create-products', 'bulk-update-stock'}


def normalize_path(path: str) -> str:
    """Normalize request path for RBAC checking"""
    if path.startswith('/'):
        path = path[1:]

    segments = [segment for segment in path.split('/') if segment]

    if len(segments) == 0:
        return path

    if segments[0] == 'admin':
        if len(segments) >= 2 and segments[1] == 'categories':
            return 'categories'
        return 'admin'

    elif segments[0] == 'orders':
        if len(segments) >= 2 and segments[1] in ('stats', 'search'):
            return 'orders/reports'
        return 'orders'

    elif segments[0] == 'sellers':
        if len(segments) >= 2 and segments[1] in SELLER_CATALOG_SEGMENTS:
            return 'sellers/catalog'
        if 'reviews' in segments:
            return 'sellers/reviews'
        return 'sellers'

    elif segments[0] == 'products':
        if len(segments) >= 2 and segments[1] == 'categories':
            return 'categories'
        return 'products'

    return segments[0]


def translate_method_to_action(method: str) -> str:
    """Map HTTP methods to RBAC actions"""
    method_permission_mapping = {
        'GET': 'read',
        'POST': 'write',
        'PUT': 'write',
        'PATCH': 'write',
        'DELETE': 'delete',
    }
    return method_permission_mapping.get(method.upper(), 'read')


def has_permission(user_role: str, resource_name: str, required_permission: str) -> bool:
    """Check if user role has permission for the resource and action"""
    if user_role not in RESOURCES_FOR_ROLES:
        return False

    user_permissions = RESOURCES_FOR_ROLES[user_role]

    if resource_name in user_permissions:
        return required_permission in user_permissions[resource_name]

    parent_resource = resource_name.split('/')[0] if '/' in resource_name else resource_name
    if parent_resource in user_permissions:
        return required_permission in user_permissions[parent_resource]

    return False


def require_permission(resource: str = None, permission: str = None):
    """
    Create an RBAC dependency that checks permissions

    Args:
        resource: Specific resource name (auto-detected if not provided)
        permission: Specific permission (auto-detected if not provided)
    """
    def check_rbac(request: Request, current_user: dict = Depends(get_current_user)):
        user_role = current_user.get('role') or 'user'

        resource_name = resource or normalize_path(str(request.url.path))
        required_permission = permission or translate_method_to_action(request.method)

        if not has_permission(user_role, resource_name, required_permission):
            logger.warning(f"Access denied - User: {user_role}, Resource: {resource_name}, Permission: {required_permission}")
            raise AuthorizationError(
                f"Access denied. {user_role.title()} role does not have {required_permission} permission for {resource_name}"
            )

        logger.debug(f"Access granted - User: {user_role}, Resource: {resource_name}, Permission: {required_permission}")
        return True

    return check_rbac


def require_role(*roles: str):
    """Dependency that only lets the listed roles through"""
    def check_role(current_user: dict = Depends(get_current_user)):
        user_role = current_user.get('role') or 'user'
        if user_role not in roles:
            logger.warning(f"Access denied - User {current_user.get('user_id')} with role {user_role} needs one of {roles}")
            raise AuthorizationError(f"Access denied. Requires role: {', '.join(roles)}")
        return current_user

    return check_role


# Admin permissions
require_admin = require_role("admin")

# Catalog permissions (admin only for write/delete)
require_product_write = require_permission("products", "write")
require_product_delete = require_permission("products", "delete")

# Orders
require_order_read = require_permission("orders", "read")
require_order_write = require_permission("orders", "write")
require_order_reports = require_permission("orders/reports", "read")

# Seller store management
require_seller_write = require_permission("sellers", "write")
require_seller_catalog = require_permission()  # resolved from the request path
require_review_write = require_permission("sellers/reviews", "write")

# Shopping
require_cart_access = require_permission()
require_wishlist_access = require_permission()

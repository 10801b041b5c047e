from typing import Any, Dict, Optional

from ..core.security import UserRole

COLLECTION = "users"

# Fields that never leave the service layer
PRIVATE_FIELDS = ("password_hash",)


def new_user_fields(
    name: str,
    email: str,
    phone: str,
    password_hash: str,
    role: UserRole = UserRole.PATIENT,
) -> Dict[str, Any]:
    """Field set for a freshly registered or seeded user."""
    return {
        "name": name,
        "email": email,
        "phone": phone,
        "password_hash": password_hash,
        "role": role.value,
        "is_active": True,
        "last_login": None,
    }


def is_active(user: Dict[str, Any]) -> bool:
    return user.get("is_active", True) is not False


def is_admin(user: Dict[str, Any]) -> bool:
    return user.get("role") == UserRole.ADMIN.value


def public_view(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy of the record without credential material."""
    if user is None:
        return None
    view = {k: v for k, v in user.items() if k not in PRIVATE_FIELDS}
    view["is_active"] = is_active(user)
    return view


def soft_deleted_email(user: Dict[str, Any]) -> str:
    return f"deleted_{user['id']}_{user['email']}"

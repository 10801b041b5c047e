import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.config import settings
from ..core.exceptions import (
    DuplicateEmail, EmailInUse, Forbidden, InvalidCredentials,
    LastAdminProtected, NotFound, Unauthenticated
)
from ..core.security import (
    Principal, Token, UserRole, check_password_strength,
    create_user_token, get_password_hash, verify_password, verify_token
)
from ..core.storage import RecordStore, to_timestamp, utc_now
from ..models import appointment as appointment_model
from ..models import user as user_model

logger = logging.getLogger(__name__)

USERS = user_model.COLLECTION
APPOINTMENTS = appointment_model.COLLECTION


class AuthService:
    def __init__(self, store: RecordStore, deletion_mode: Optional[str] = None):
        self.store = store
        self.deletion_mode = deletion_mode or settings.DELETION_MODE

    async def register(self, name: str, email: str, phone: str, password: str) -> Tuple[Principal, Token]:
        """Register a new patient and sign them in."""
        existing_user = await self.store.get_by_field(USERS, "email", email)
        if existing_user:
            raise DuplicateEmail()

        password_hash = await asyncio.to_thread(get_password_hash, password)
        user = await self.store.create(
            USERS,
            user_model.new_user_fields(name, email, phone, password_hash, UserRole.PATIENT),
        )
        logger.info(f"Registered user {user['id']}")

        return Principal.from_user(user), self._issue_token(user)

    async def login(self, email: str, password: str) -> Tuple[Principal, Token]:
        """Authenticate user and return a fresh token."""
        users = await self.store.list_all(USERS)
        user = next(
            (u for u in users if u.get("email") == email and user_model.is_active(u)),
            None,
        )
        if not user:
            raise InvalidCredentials()

        if not await asyncio.to_thread(verify_password, password, user.get("password_hash")):
            raise InvalidCredentials()

        user = await self.store.update(USERS, user["id"], {"last_login": to_timestamp(utc_now())})
        return Principal.from_user(user), self._issue_token(user)

    async def authenticate(self, token: Optional[str]) -> Principal:
        """Resolve a bearer token; anything unusable yields the anonymous principal."""
        if not token:
            return Principal.anonymous()

        payload = await asyncio.to_thread(verify_token, token)
        if not payload or not payload.sub:
            return Principal.anonymous()

        user = await self.store.get_by_id(USERS, payload.sub)
        if not user or not user_model.is_active(user):
            return Principal.anonymous()

        try:
            return Principal.from_user(user)
        except ValueError:
            logger.warning(f"User {user['id']} has unrecognized role {user.get('role')!r}")
            return Principal.anonymous()

    async def get_profile(self, principal: Principal) -> Dict[str, Any]:
        user = await self._require_user(principal)
        return user_model.public_view(user)

    async def change_password(self, principal: Principal, current_password: str, new_password: str) -> None:
        user = await self._require_user(principal)

        if not await asyncio.to_thread(verify_password, current_password, user.get("password_hash")):
            raise InvalidCredentials("Current password is incorrect")

        check_password_strength(new_password)

        password_hash = await asyncio.to_thread(get_password_hash, new_password)
        await self.store.update(USERS, user["id"], {
            "password_hash": password_hash,
            "password_changed_at": to_timestamp(utc_now()),
        })
        logger.info(f"Password changed for user {user['id']}")

    async def change_email(self, principal: Principal, new_email: str, password: str) -> Tuple[str, str]:
        """Swap the admin's email, keeping the previous one on the record."""
        if not principal.is_authenticated:
            raise Unauthenticated()
        if not principal.is_admin:
            raise Forbidden("Admin access required")

        if await self.store.get_by_field(USERS, "email", new_email):
            raise EmailInUse()

        user = await self._require_user(principal)
        if not await asyncio.to_thread(verify_password, password, user.get("password_hash")):
            raise InvalidCredentials("Password is incorrect")

        old_email = user["email"]
        await self.store.update(USERS, user["id"], {
            "email": new_email,
            "old_email": old_email,
            "email_changed_at": to_timestamp(utc_now()),
        })
        logger.info(f"Email changed for user {user['id']}")
        return old_email, new_email

    async def update_profile(
        self,
        principal: Principal,
        name: Optional[str] = None,
        phone: Optional[str] = None
    ) -> Dict[str, Any]:
        user = await self._require_user(principal)

        changes = {}
        if name:
            changes["name"] = name
        if phone:
            changes["phone"] = phone

        updated = await self.store.update(USERS, user["id"], changes)
        return user_model.public_view(updated)

    async def delete_account(self, principal: Principal, password: str) -> None:
        """Delete the caller's account and anonymize the appointments it owns."""
        user = await self._require_user(principal)

        if not await asyncio.to_thread(verify_password, password, user.get("password_hash")):
            raise InvalidCredentials("Password is incorrect")

        if user_model.is_admin(user):
            await self._guard_last_admin(user["id"])

        # before the user change; a failure here leaves the account intact
        anonymized = await self._anonymize_appointments(user["id"], user.get("email"))

        if self.deletion_mode == "hard":
            await self.store.remove(USERS, user["id"])
        else:
            await self.store.update(USERS, user["id"], {
                "is_active": False,
                "deleted_at": to_timestamp(utc_now()),
                "email": user_model.soft_deleted_email(user),
            })

        logger.info(
            f"Deleted account {user['id']} ({self.deletion_mode}); "
            f"{anonymized} appointment(s) anonymized"
        )

    async def login_history(self, principal: Principal, user_id: str) -> Dict[str, Any]:
        self._require_admin(principal)
        user = await self.store.get_by_id(USERS, user_id)
        if not user:
            raise NotFound("User not found")

        return {
            "last_login": user.get("last_login") or "Never",
            "created_at": user.get("created_at"),
            "updated_at": user.get("updated_at"),
            "password_changed_at": user.get("password_changed_at"),
            "email_changed_at": user.get("email_changed_at"),
        }

    # User administration
    async def list_users(self, principal: Principal) -> List[Dict[str, Any]]:
        self._require_admin(principal)
        return [user_model.public_view(u) for u in await self.store.list_all(USERS)]

    async def get_user(self, principal: Principal, user_id: str) -> Dict[str, Any]:
        self._require_admin(principal)
        user = await self.store.get_by_id(USERS, user_id)
        if not user:
            raise NotFound("User not found")
        return user_model.public_view(user)

    async def set_user_active(self, principal: Principal, user_id: str, is_active: bool) -> Dict[str, Any]:
        self._require_admin(principal)
        user = await self.store.get_by_id(USERS, user_id)
        if not user:
            raise NotFound("User not found")

        if not is_active and user_model.is_admin(user) and user_model.is_active(user):
            await self._guard_last_admin(user_id)

        updated = await self.store.update(USERS, user_id, {"is_active": is_active})
        logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")
        return user_model.public_view(updated)

    async def ensure_admin(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        password: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Create the default admin unless an active admin already exists."""
        users = await self.store.list_all(USERS)
        if any(user_model.is_admin(u) and user_model.is_active(u) for u in users):
            return None

        password_hash = await asyncio.to_thread(
            get_password_hash, password or settings.DEFAULT_ADMIN_PASSWORD
        )
        admin = await self.store.create(USERS, user_model.new_user_fields(
            name or settings.DEFAULT_ADMIN_NAME,
            email or settings.DEFAULT_ADMIN_EMAIL,
            phone or settings.DEFAULT_ADMIN_PHONE,
            password_hash,
            UserRole.ADMIN,
        ))
        logger.info(f"Created default admin {admin['email']}")
        return user_model.public_view(admin)

    def _issue_token(self, user: Dict[str, Any]) -> Token:
        return create_user_token(user["id"], user["email"], user["role"])

    def _require_admin(self, principal: Principal) -> None:
        if not principal.is_authenticated:
            raise Unauthenticated()
        if not principal.is_admin:
            raise Forbidden("Admin access required")

    async def _require_user(self, principal: Principal) -> Dict[str, Any]:
        if not principal.is_authenticated:
            raise Unauthenticated()
        user = await self.store.get_by_id(USERS, principal.id)
        if not user or not user_model.is_active(user):
            raise NotFound("User not found")
        return user

    async def _guard_last_admin(self, user_id: str) -> None:
        users = await self.store.list_all(USERS)
        others = [
            u for u in users
            if u.get("id") != user_id and user_model.is_admin(u) and user_model.is_active(u)
        ]
        if not others:
            raise LastAdminProtected()

    async def _anonymize_appointments(self, user_id: str, email: Optional[str]) -> int:
        lowered = email.lower() if email else None
        stamp = to_timestamp(utc_now())

        def apply(appointments):
            count = 0
            for index, appt in enumerate(appointments):
                owned = appt.get("user_id") == user_id or (
                    lowered is not None and (appt.get("patient_email") or "").lower() == lowered
                )
                if owned:
                    appointments[index] = {
                        **appt,
                        **appointment_model.anonymized(appt),
                        "updated_at": stamp,
                    }
                    count += 1
            return count

        return await self.store.modify(APPOINTMENTS, apply)

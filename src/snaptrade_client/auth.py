from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import keyring
from keyring.errors import KeyringError
from pydantic import SecretStr

from snaptrade_client.errors import ErrorCode, SnapTradeError
from snaptrade_client.models import AuthStatus, PartnerCredentials, UserCredentials


PARTNER_SERVICE = "snaptrade.partner"
USER_SERVICE = "snaptrade.user"
logger = logging.getLogger(__name__)


@dataclass
class CredentialStore:
    def _get(self, service: str, key: str) -> str | None:
        try:
            return keyring.get_password(service, key)
        except KeyringError as exc:
            logger.warning("Keyring read failed for %s:%s: %s", service, key, exc)
            return None

    def _set(self, service: str, key: str, value: str) -> None:
        keyring.set_password(service, key, value)

    def _delete(self, service: str, key: str) -> None:
        try:
            keyring.delete_password(service, key)
        except KeyringError as exc:
            logger.warning("Keyring delete failed for %s:%s: %s", service, key, exc)

    def get_partner_credentials(self, profile: str) -> tuple[str | None, str | None]:
        client_id = self._get(PARTNER_SERVICE, f"{profile}:client_id")
        consumer_key = self._get(PARTNER_SERVICE, f"{profile}:consumer_key")
        return client_id, consumer_key

    def set_partner_credentials(self, profile: str, client_id: str, consumer_key: str) -> None:
        self._set(PARTNER_SERVICE, f"{profile}:client_id", client_id)
        self._set(PARTNER_SERVICE, f"{profile}:consumer_key", consumer_key)

    def delete_partner_credentials(self, profile: str) -> None:
        self._delete(PARTNER_SERVICE, f"{profile}:client_id")
        self._delete(PARTNER_SERVICE, f"{profile}:consumer_key")

    def get_user_credentials(self, profile: str) -> tuple[str | None, str | None]:
        user_id = self._get(USER_SERVICE, f"{profile}:user_id")
        user_secret = self._get(USER_SERVICE, f"{profile}:user_secret")
        return user_id, user_secret

    def set_user_credentials(self, profile: str, user_id: str, user_secret: str) -> None:
        self._set(USER_SERVICE, f"{profile}:user_id", user_id)
        self._set(USER_SERVICE, f"{profile}:user_secret", user_secret)

    def delete_user_credentials(self, profile: str) -> None:
        self._delete(USER_SERVICE, f"{profile}:user_id")
        self._delete(USER_SERVICE, f"{profile}:user_secret")


class AuthManager:
    """Resolves partner and end-user credentials: environment first, then keyring."""

    def __init__(self, profile: str, store: CredentialStore | None = None) -> None:
        self.profile = profile
        self.store = store or CredentialStore()

    def _resolve_partner(self) -> tuple[str | None, str | None]:
        client_id = os.getenv("SNAPTRADE_CLIENT_ID")
        consumer_key = os.getenv("SNAPTRADE_CONSUMER_KEY")
        if client_id and consumer_key:
            return client_id, consumer_key

        stored_id, stored_key = self.store.get_partner_credentials(self.profile)
        return client_id or stored_id, consumer_key or stored_key

    def _resolve_user(self) -> tuple[str | None, str | None]:
        user_id = os.getenv("SNAPTRADE_USER_ID")
        user_secret = os.getenv("SNAPTRADE_USER_SECRET")
        if user_id and user_secret:
            return user_id, user_secret

        stored_id, stored_secret = self.store.get_user_credentials(self.profile)
        return user_id or stored_id, user_secret or stored_secret

    def partner_credentials(self) -> PartnerCredentials:
        client_id, consumer_key = self._resolve_partner()
        if not client_id or not consumer_key:
            raise SnapTradeError(
                code=ErrorCode.AUTH_REQUIRED,
                message="Missing SNAPTRADE_CLIENT_ID or SNAPTRADE_CONSUMER_KEY",
            )
        return PartnerCredentials(client_id=client_id, consumer_key=SecretStr(consumer_key))

    def user_credentials(self, user_id: str | None = None, user_secret: str | None = None) -> UserCredentials:
        resolved_id, resolved_secret = self._resolve_user()
        final_id = user_id or resolved_id
        final_secret = user_secret or resolved_secret
        if not final_id or not final_secret:
            raise SnapTradeError(
                code=ErrorCode.AUTH_REQUIRED,
                message="Missing SNAPTRADE_USER_ID or SNAPTRADE_USER_SECRET",
            )
        return UserCredentials(user_id=final_id, user_secret=SecretStr(final_secret))

    def save_partner(self, client_id: str, consumer_key: str) -> None:
        self.store.set_partner_credentials(self.profile, client_id, consumer_key)

    def save_user(self, user_id: str, user_secret: str) -> None:
        self.store.set_user_credentials(self.profile, user_id, user_secret)

    def forget(self) -> None:
        self.store.delete_partner_credentials(self.profile)
        self.store.delete_user_credentials(self.profile)

    def partner_status(self) -> AuthStatus:
        client_id, consumer_key = self._resolve_partner()
        ok = bool(client_id and consumer_key)
        return AuthStatus(
            scope="partner",
            authenticated=ok,
            detail="Credentials configured" if ok else "Missing SNAPTRADE_CLIENT_ID or SNAPTRADE_CONSUMER_KEY",
        )

    def user_status(self) -> AuthStatus:
        user_id, user_secret = self._resolve_user()
        ok = bool(user_id and user_secret)
        return AuthStatus(
            scope="user",
            authenticated=ok,
            detail=f"User {user_id} configured" if ok else "Missing SNAPTRADE_USER_ID or SNAPTRADE_USER_SECRET",
        )

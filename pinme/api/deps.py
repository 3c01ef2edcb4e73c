from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pinme.core.security import StaticIdentity, decode_user_id
from pinme.services.runtime import ReminderRuntime
from pinme.services.settings_store import SettingsStore

# Signing in is optional: without a token settings stay device-local
bearer_scheme = HTTPBearer(auto_error=False)


def get_runtime(request: Request) -> ReminderRuntime:
    return request.app.state.runtime


def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> StaticIdentity:
    token = credentials.credentials if credentials else None
    return StaticIdentity(decode_user_id(token))


def get_settings_store(
    runtime: ReminderRuntime = Depends(get_runtime),
    identity: StaticIdentity = Depends(get_identity),
) -> SettingsStore:
    return runtime.settings_for(identity)

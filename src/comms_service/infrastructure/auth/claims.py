from __future__ import annotations

from typing import Any

import jwt

from comms_service.application.dto.principal import Principal


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token subject must be a numeric user id") from exc
    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    role = payload.get("role")
    if role and role not in roles:
        roles = [*roles, role]
    return Principal(user_id=user_id, roles=list(roles))

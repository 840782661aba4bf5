from __future__ import annotations

import base64
import binascii

from fastapi import HTTPException, Request, status
from pydantic import ValidationError as ModelValidationError

from app.core.config import get_settings
from app.models.clinical import Actor


def require_admin(request: Request) -> None:
    """Check the admin Basic credentials

    Args:
        request: FastAPI request

    Raises:
        HTTPException: when authentication fails
    """
    settings = get_settings()
    credentials = request.headers.get("Authorization", "")
    if not credentials.startswith("Basic "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Autenticação necessária",
            headers={"WWW-Authenticate": "Basic"},
        )

    encoded = credentials.replace("Basic ", "", 1).strip()
    try:
        decoded = base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas",
            headers={"WWW-Authenticate": "Basic"},
        ) from exc

    if ":" not in decoded:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas",
            headers={"WWW-Authenticate": "Basic"},
        )

    admin_id, admin_password = decoded.split(":", 1)
    if admin_id != settings.admin_id or admin_password != settings.admin_password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Falha na autenticação",
            headers={"WWW-Authenticate": "Basic"},
        )


def require_actor(request: Request) -> Actor:
    """Resolve the X-User-Id header against the users collection

    Args:
        request: FastAPI request

    Returns:
        Current actor

    Raises:
        HTTPException: when the header is missing or names no valid user
    """
    user_id = request.headers.get("X-User-Id", "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário não identificado",
        )
    user = request.app.state.store.get_one("users", user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuário desconhecido",
        )
    try:
        return Actor.model_validate(user)
    except ModelValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Perfil de usuário inválido",
        ) from exc

# gateway/api/context.py
"""
Per-operation execution context.

build_context is called once for every incoming GraphQL operation (HTTP
request or WebSocket subscription). It always creates new loaders; the
context is owned by that single operation and dropped when it completes.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from gateway.api.auth.token import DEFAULT_ALGORITHM, DEFAULT_EXPIRE_MINUTES, bearer_token, decode_token, sign_token
from gateway.api.errors import AuthenticationError
from gateway.api.loaders import Loaders, create_loaders
from gateway.api.utils.logger import write_log


@dataclass
class RequestContext:
    models: Any
    loaders: Loaders
    request: Any = None
    response: Any = None
    secret: Optional[str] = None
    token: Optional[str] = None
    pubsub: Any = None
    permissions: Any = None
    algorithm: str = DEFAULT_ALGORITHM
    expire_minutes: int = DEFAULT_EXPIRE_MINUTES
    user: Any = None
    _user_resolved: bool = field(default=False, repr=False)

    async def current_user(self):
        """
        Decode the bearer token with the configured secret and load the
        caller through the user loader. The outcome is memoised on the
        context; invalid or missing tokens give None.
        """
        if self._user_resolved:
            return self.user
        payload = decode_token(self.token, self.secret, self.algorithm)
        user = None
        if payload:
            try:
                user = await self.loaders.user.load(int(payload["sub"]))
            except (KeyError, ValueError):
                write_log({"event": "token_bad_subject", "sub": payload.get("sub")}, stream="auth")
        self.user = user
        self._user_resolved = True
        return user

    def login(self, user) -> str:
        """Mark ``user`` as the caller of this operation and issue a token."""
        if not self.secret:
            raise AuthenticationError("Signing in requires an HTTP request")
        self.user = user
        self._user_resolved = True
        self.loaders.user.prime(user.id, user)
        return sign_token(
            user.id,
            self.secret,
            role=user.role,
            expire_minutes=self.expire_minutes,
            algorithm=self.algorithm,
        )


def _connection_params(request: Any) -> Mapping[str, Any]:
    scope = getattr(request, "scope", None) or {}
    params = scope.get("connection_params") if isinstance(scope, Mapping) else None
    return params if isinstance(params, Mapping) else {}


def token_from_request(request: Any) -> Optional[str]:
    headers = getattr(request, "headers", None) or {}
    token = bearer_token(headers.get("authorization"))
    if token:
        return token
    # WebSocket clients send credentials in the connection_init payload
    params = _connection_params(request)
    return bearer_token(params.get("Authorization") or params.get("authorization")) or params.get("authToken")


def build_context(
    request: Any = None,
    response: Any = None,
    *,
    models: Any,
    secret: Optional[str],
    pubsub: Any = None,
    permissions: Any = None,
    algorithm: str = DEFAULT_ALGORITHM,
    expire_minutes: int = DEFAULT_EXPIRE_MINUTES,
) -> RequestContext:
    loaders = create_loaders(models)

    if request is None and response is None:
        # Transport-level invocation: anonymous context, never a secret
        return RequestContext(
            models=models,
            loaders=loaders,
            pubsub=pubsub,
            permissions=permissions,
            algorithm=algorithm,
            expire_minutes=expire_minutes,
        )

    return RequestContext(
        models=models,
        loaders=loaders,
        request=request,
        response=response,
        secret=secret if request is not None else None,
        token=token_from_request(request) if request is not None else None,
        pubsub=pubsub,
        permissions=permissions,
        algorithm=algorithm,
        expire_minutes=expire_minutes,
    )


def make_context_value(models: Any, settings: Any, pubsub: Any = None, permissions: Any = None) -> Callable:
    """Adapt build_context to ariadne's ``context_value(request, data)`` hook."""

    async def context_value(request: Any, data: Any = None) -> RequestContext:
        return build_context(
            request,
            None,
            models=models,
            secret=settings.secret_key,
            pubsub=pubsub,
            permissions=permissions,
            algorithm=settings.algorithm,
            expire_minutes=settings.access_token_expire_minutes,
        )

    return context_value

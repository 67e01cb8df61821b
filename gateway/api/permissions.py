# gateway/api/permissions.py
"""
Permission gate.

A rule table maps (root type, field) to a rule. The gate runs as a
graphql-core middleware: for Query and Mutation fields it evaluates the
rule before the resolver and raises instead of calling it when the rule
says no. Subscription sources call ``authorize`` directly because
subscriptions are not run through middleware. Rules are plain callables
``rule(obj, info, **args) -> bool`` and may be coroutines.
"""
from inspect import isawaitable
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from gateway.api.errors import AuthenticationError, ForbiddenError
from gateway.api.utils.logger import caller_fields, write_log

Rule = Callable[..., Any]

GATED_TYPES = ("Query", "Mutation")


def allow(obj, info, **kwargs) -> bool:
    return True


def deny(obj, info, **kwargs) -> bool:
    return False


async def is_authenticated(obj, info, **kwargs) -> bool:
    return await info.context.current_user() is not None


def has_role(*roles: str) -> Rule:
    allowed = {role.upper() for role in roles}

    async def rule(obj, info, **kwargs) -> bool:
        user = await info.context.current_user()
        return user is not None and user.role in allowed

    rule.__name__ = f"has_role({', '.join(sorted(allowed))})"
    return rule


DEFAULT_RULES: Mapping[str, Mapping[str, Rule]] = {
    "Query": {
        "*": allow,
    },
    "Mutation": {
        "*": allow,
    },
}


class PermissionGate:
    def __init__(self, rules: Mapping[str, Mapping[str, Rule]], fallback_rule: Rule = allow):
        self.rules = MappingProxyType(
            {type_name: MappingProxyType(dict(fields)) for type_name, fields in rules.items()}
        )
        self.fallback_rule = fallback_rule

    def rule_for(self, type_name: str, field_name: str) -> Rule:
        fields = self.rules.get(type_name)
        if fields is None:
            return self.fallback_rule
        return fields.get(field_name) or fields.get("*") or self.fallback_rule

    def resolve(self, next_, obj, info, **kwargs):
        type_name = info.parent_type.name
        if type_name not in GATED_TYPES:
            return next_(obj, info, **kwargs)
        rule = self.rule_for(type_name, info.field_name)
        if rule is allow:
            return next_(obj, info, **kwargs)
        return self._guarded(next_, obj, info, **kwargs)

    async def authorize(self, obj, info, **kwargs) -> None:
        """Evaluate the rule for the field behind ``info``; raise when it says no."""
        rule = self.rule_for(info.parent_type.name, info.field_name)
        if rule is allow:
            return
        allowed = rule(obj, info, **kwargs)
        if isawaitable(allowed):
            allowed = await allowed
        if not allowed:
            raise await self._denied(info, rule)

    async def _guarded(self, next_, obj, info, **kwargs):
        await self.authorize(obj, info, **kwargs)
        result = next_(obj, info, **kwargs)
        if isawaitable(result):
            result = await result
        return result

    async def _denied(self, info, rule: Rule) -> Exception:
        context = getattr(info, "context", None)
        # A token that does not resolve to a user counts as no identity at all
        user = None
        if context is not None and hasattr(context, "current_user"):
            user = await context.current_user()
        entry: Dict[str, Any] = {
            "event": "permission_denied",
            "operation": info.parent_type.name,
            "field": info.field_name,
            "rule": getattr(rule, "__name__", repr(rule)),
        }
        entry.update(caller_fields(context))
        write_log(entry, stream="auth")
        if user is None:
            return AuthenticationError()
        return ForbiddenError()


def shield(rules: Optional[Mapping[str, Mapping[str, Rule]]] = None, fallback_rule: Rule = allow) -> PermissionGate:
    return PermissionGate(DEFAULT_RULES if rules is None else rules, fallback_rule=fallback_rule)

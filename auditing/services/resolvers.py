"""
Default actor and context resolvers.

Each resolver exposes a ``resolve()`` that takes no arguments, as a static
method or on an instance. They read the request being served from the
request context and fall back to console values when there is none.
Replace any of them through ``Settings.resolvers`` or the ``resolvers``
argument of the builder.
"""
import inspect
from typing import Any, Mapping, Optional, Tuple

from auditing.context import get_current_request
from auditing.exceptions import InvalidResolverError
from auditing.settings import Settings, get_settings
from auditing.utils import import_string


# Settings key -> name used in error messages
RESOLVER_NAMES = {
    "user": "UserResolver",
    "group": "GroupIdResolver",
    "url": "UrlResolver",
    "ip_address": "IpAddressResolver",
    "user_agent": "UserAgentResolver",
}


class UserResolver:
    """Actor from the UID request header."""

    @staticmethod
    def resolve() -> Tuple[Optional[str], Optional[str]]:
        request = get_current_request()
        if request is None:
            return None, None
        user_id = request.headers.get("uid")
        if not user_id:
            return None, None
        return user_id, get_settings().user_type


class GroupIdResolver:
    """Group from the GID request header."""

    @staticmethod
    def resolve() -> Optional[str]:
        request = get_current_request()
        if request is None:
            return None
        return request.headers.get("gid")


class UrlResolver:
    @staticmethod
    def resolve() -> str:
        request = get_current_request()
        if request is None:
            return "console"
        return str(request.url)


class IpAddressResolver:
    @staticmethod
    def resolve() -> str:
        request = get_current_request()
        if request is None or request.client is None:
            return "127.0.0.1"
        return request.client.host


class UserAgentResolver:
    @staticmethod
    def resolve() -> Optional[str]:
        request = get_current_request()
        if request is None:
            return None
        return request.headers.get("user-agent")


def load_resolver(
    key: str,
    settings: Optional[Settings] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Any:
    """
    Resolver configured under ``key``.

    Overrides win over Settings.resolvers. Raises InvalidResolverError when the
    resolver is unset, cannot be imported or instantiated, or has no resolve()
    callable without arguments.
    """
    name = RESOLVER_NAMES.get(key, key)
    if overrides is not None and key in overrides:
        implementation = overrides[key]
    else:
        implementation = (settings or get_settings()).resolvers.get(key)

    if implementation is None:
        raise InvalidResolverError(name)

    if isinstance(implementation, str):
        try:
            implementation = import_string(implementation)
        except ImportError:
            raise InvalidResolverError(name)

    # Classes with an instance-level resolve() are used through an instance
    if isinstance(implementation, type):
        resolve = inspect.getattr_static(implementation, "resolve", None)
        if resolve is not None and not isinstance(resolve, (staticmethod, classmethod)):
            try:
                implementation = implementation()
            except TypeError:
                raise InvalidResolverError(name)

    if not callable(getattr(implementation, "resolve", None)):
        raise InvalidResolverError(name)

    try:
        inspect.signature(implementation.resolve).bind()
    except TypeError:
        raise InvalidResolverError(name)
    except ValueError:
        # No signature available (builtins); call it as is
        pass

    return implementation

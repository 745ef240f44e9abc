from typing import Any, Callable, ClassVar, NamedTuple, TypeVar, Union, cast

from .http.model import HTTPRequest, HTTPResponse

T = TypeVar("T")


class Transform(NamedTuple):
    """Represents a transformation to be applied to a request handler"""

    transform: Callable[..., Any]
    args: tuple[Any, ...]
    kwargs: dict[str, Any]


class Extra:
    """Defines the attributes used by decorators"""

    ON: ClassVar[str] = "_servedir_on"
    POST: ClassVar[str] = "_servedir_post"

    @staticmethod
    def Meta(scope: Any) -> dict[str, Any]:
        """Returns the dictionary of meta attributes for the given value."""
        if not hasattr(scope, "__dict__"):
            raise RuntimeError(f"Metadata cannot be attached to object: {scope}")
        return cast(dict[str, Any], scope.__dict__)


def on(**methods: Union[str, list[str], tuple[str, ...]]) -> Callable[[T], T]:
    """The @on decorator marks a method as processing HTTP requests for the
    given methods, each mapped to one or more path prefixes:

    >    @on(GET="/")
    >    def read(self, request):
    >        return request.respond(...)

    Methods can be combined with `_`, as in `GET_HEAD`, and `ANY` matches
    the methods no other handler takes."""

    def decorator(function: T) -> T:
        v = Extra.Meta(function).setdefault(Extra.ON, [])
        for http_methods, url in methods.items():
            urls = (url,) if isinstance(url, str) else url
            for http_method in http_methods.upper().split("_"):
                for _ in urls:
                    v.append((http_method, _))
        return function

    return decorator


def post(
    transform: Callable[[HTTPRequest, HTTPResponse], HTTPResponse]
) -> Callable[[T], T]:
    """Registers the given `transform` as a post-processing step of the
    decorated function."""

    def decorator(function: T, *args: Any, **kwargs: Any) -> T:
        v = Extra.Meta(function).setdefault(Extra.POST, [])
        v.append(Transform(transform, args, kwargs))
        return function

    return decorator


# EOF

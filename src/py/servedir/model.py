import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, ClassVar, Iterable, Optional

from .config import DECODE_ERROR_STATUS
from .decorators import Extra, Transform
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .utils.logging import exception, info, warning

# -----------------------------------------------------------------------------
#
# CONTEXT
#
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ServerContext:
    """What every request needs to know about the server. It is created
    once at startup and shared, read-only, by all the requests."""

    root: Path
    decodeErrorStatus: int = DECODE_ERROR_STATUS

    @staticmethod
    def FromPath(
        path: str | Path, *, decodeErrorStatus: int = DECODE_ERROR_STATUS
    ) -> "ServerContext":
        """Creates a context serving the given directory, raising an `OSError`
        if it can't be opened or is not a directory."""
        root = Path(path).absolute()
        if not stat.S_ISDIR(os.stat(root).st_mode):
            raise NotADirectoryError(f"{path} isn't a directory.")
        # Makes sure we can list it
        with os.scandir(root):
            pass
        return ServerContext(root=root, decodeErrorStatus=decodeErrorStatus)


# -----------------------------------------------------------------------------
#
# HANDLER
#
# -----------------------------------------------------------------------------


class Handler:
    """A handler wraps a method and maps it to path prefixes for HTTP
    methods, running its post-processing transforms on whatever it
    returns."""

    @classmethod
    def Get(cls, value: Any) -> Optional["Handler"]:
        meta: dict[str, Any] | None = getattr(value, "__dict__", None)
        if meta is None and hasattr(value, "__func__"):
            # Bound methods expose their function's attributes
            meta = getattr(value.__func__, "__dict__", None)
        if not meta or Extra.ON not in meta:
            return None
        return Handler(
            functor=value,
            methods=meta[Extra.ON],
            post=meta.get(Extra.POST),
        )

    def __init__(
        self,
        functor: Callable[[HTTPRequest], HTTPResponse],
        methods: list[tuple[str, str]],
        post: list[Transform] | None = None,
    ):
        self.functor = functor
        self.methods: dict[str, list[str]] = {}
        for method, path in methods:
            self.methods.setdefault(method, []).append(path)
        self.post: list[Transform] = post or []

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        try:
            response = self.functor(request)
        except HTTPRequestError as error:
            status = error.status or 500
            if status >= 500:
                warning(error.message, Method=request.method, URI=request.uri)
            response = request.error(status, error.message)
        except Exception as e:
            exception(e, f"Handler failed on {request.method} {request.uri}")
            response = request.fail("internal server error")
        for t in self.post:
            t.transform(request, response, *t.args, **t.kwargs)
        return response

    def __repr__(self) -> str:
        methods = " ".join(
            f'({k} {" ".join(repr(_) for _ in v)})' for k, v in self.methods.items()
        )
        return f"(Handler ({methods}) '{self.functor}' :post({len(self.post)}))"


# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
    PREFIX: ClassVar[str] = ""
    NO_HANDLER: ClassVar[list[str]] = ["name", "app", "prefix", "handlers"]

    def __init__(self, name: Optional[str] = None, *, prefix: str | None = None):
        self.name: str = name or self.__class__.__name__
        self.app: Optional[Application] = None
        self.prefix: str = prefix or self.PREFIX
        self._handlers: Optional[list[Handler]] = None

    @property
    def isMounted(self) -> bool:
        return self.app is not None

    @property
    def handlers(self) -> list[Handler]:
        if self._handlers is None:
            self._handlers = list(self.iterHandlers())
        return self._handlers

    def iterHandlers(self) -> Iterable[Handler]:
        for name in dir(self):
            if name in self.NO_HANDLER or name.startswith("__"):
                continue
            handler = Handler.Get(getattr(self, name))
            if handler:
                yield handler

    def __repr__(self) -> str:
        return f"(Service {self.name}{' :mounted' if self.isMounted else ''})"


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
    """Dispatches requests to the handlers of the mounted services, by method
    and then by the longest matching path prefix."""

    ANY: ClassVar[str] = "ANY"

    def __init__(self) -> None:
        self.services: list[Service] = []
        self.routes: dict[str, list[tuple[str, Handler]]] = {}

    def mount(self, service: Service, prefix: Optional[str] = None) -> Service:
        if service.isMounted:
            raise RuntimeError(
                f"Cannot mount service, it is already mounted: {service}"
            )
        base = prefix if prefix is not None else service.prefix
        for handler in service.handlers:
            for method, paths in handler.methods.items():
                for path in paths:
                    path = f"{base.rstrip('/')}/{path.lstrip('/')}"
                    info("Registered route", Method=method, Path=path)
                    self.routes.setdefault(method, []).append((path, handler))
        for routes in self.routes.values():
            routes.sort(key=lambda _: len(_[0]), reverse=True)
        service.app = self
        self.services.append(service)
        return service

    @property
    def methods(self) -> list[str]:
        return [_ for _ in self.routes if _ != self.ANY]

    def match(self, method: str, path: str) -> Handler | None:
        for key in (method, self.ANY):
            for prefix, handler in self.routes.get(key, ()):
                if path.startswith(prefix):
                    return handler
        return None

    def process(self, request: HTTPRequest) -> HTTPResponse:
        # Targets like `*` (as in `OPTIONS *`) are matched as paths
        path = request.path if request.path.startswith("/") else f"/{request.path}"
        handler = self.match(request.method, path)
        if handler:
            return handler(request)
        elif request.method in self.routes:
            return request.notFound("file not found")
        else:
            return request.notAllowed(self.methods)


def mount(*services: Service) -> Application:
    """Mounts the given services into an application"""
    app = Application()
    for service in services:
        app.mount(service)
    return app


# EOF

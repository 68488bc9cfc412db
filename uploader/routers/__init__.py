import importlib
import logging
import pkgutil
from typing import Iterator, List, Tuple

from fastapi import APIRouter, FastAPI

logger = logging.getLogger(__name__)


def iter_routers(package_name: str = __name__) -> Iterator[Tuple[str, APIRouter]]:
    """Yield ``(module_name, router)`` for every module of the package exposing a ``router``, by name."""
    package = importlib.import_module(package_name)
    modules = sorted(pkgutil.iter_modules(package.__path__), key=lambda info: info.name)

    for info in modules:
        if info.ispkg:
            continue

        router = getattr(importlib.import_module(f"{package_name}.{info.name}"), "router", None)
        if isinstance(router, APIRouter):
            yield info.name, router


def register_routers(app: FastAPI) -> List[str]:
    prefixes = []
    for module_name, router in iter_routers():
        app.include_router(router)
        prefixes.append(router.prefix)
        logger.debug("registered router %s (%s)", module_name, router.prefix)

    return prefixes

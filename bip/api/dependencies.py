"""
Request dependencies shared by the API routes.
"""

from typing import Annotated

from fastapi import Depends, Request

from bip.store import Registry


def get_registry(request: Request) -> Registry:
    """
    Get the registry built for this application.

    Raises:
        RuntimeError: If the application has not recovered its registry yet.
    """
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("Registry is not initialized")
    return registry


RegistryDep = Annotated[Registry, Depends(get_registry)]

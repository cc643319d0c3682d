"""
FastAPI dependencies shared by the routes.
"""

from typing import Annotated

from fastapi import Depends, Request

from jobdispatch.dispatcher import Dispatcher


def get_dispatcher(request: Request) -> Dispatcher:
    """Return the dispatcher owned by the application serving the request."""
    return request.app.state.dispatcher


# Type alias for dependency injection
DispatcherDep = Annotated[Dispatcher, Depends(get_dispatcher)]

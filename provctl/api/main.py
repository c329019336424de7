import uvicorn
from fastapi import FastAPI

from provctl import __version__
from provctl.api.middleware import AuthMiddleware
from provctl.api.routes import apply, validate
from provctl.config import Config
from provctl.logging import setup_logging

app = FastAPI(title="provctl", version=__version__)
app.add_middleware(AuthMiddleware)

app.include_router(validate.router)
app.include_router(apply.router)


def serve(host: str = "0.0.0.0", port: int = 8000):
    """Console script entry point for the API server."""
    Config.validate()
    setup_logging()
    uvicorn.run(app, host=host, port=port)

"""HTTP interface: FastAPI app factory and routers."""

from backend_flutterai.api_server.server import create_app
from backend_flutterai.api_server.services import ServiceContainer, build_services, get_services

__all__ = ["ServiceContainer", "build_services", "create_app", "get_services"]

from .server import ReleaseAPIServer, create_app

__all__ = ["ReleaseAPIServer", "create_app"]

from .responder import Responder
from .router import CommandRouter, RequestContext
from .server import ConduitServer

__all__ = ["CommandRouter", "RequestContext", "Responder", "ConduitServer"]

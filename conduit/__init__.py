"""
Conduit: binary option/payload framing over a message transport, with
token-correlated request/response on top.
"""

__version__ = "0.1.0"

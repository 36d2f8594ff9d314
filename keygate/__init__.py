"""keygate: public certificate/secret endpoints and an admin RPC surface in front of a key backend."""

__version__ = "0.1.0"

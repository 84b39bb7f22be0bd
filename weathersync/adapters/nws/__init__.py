from .client import NWSClient

__all__ = ["NWSClient"]

from .policy import FusionPolicy

__all__ = ["FusionPolicy"]

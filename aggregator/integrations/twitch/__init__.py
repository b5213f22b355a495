from .retrieve import TwitchSource

__all__ = ["TwitchSource"]

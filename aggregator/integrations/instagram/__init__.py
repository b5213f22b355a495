from .publish import ContainerStatus, InstagramGraphPublisher
from .upload import InstagrapiPublisher

__all__ = ["ContainerStatus", "InstagramGraphPublisher", "InstagrapiPublisher"]

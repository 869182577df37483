from .base import UserAwareController
from .tags import TagController

__all__ = ["TagController", "UserAwareController"]

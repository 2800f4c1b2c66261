from .file import File
from .shared_link import SharedLink

__all__ = ["File", "SharedLink"]

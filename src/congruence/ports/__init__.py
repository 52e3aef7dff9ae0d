from .filesystem import FilesystemPort
from .layer import SimilarityLayer

__all__ = ["FilesystemPort", "SimilarityLayer"]

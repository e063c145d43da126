"""Android project generation."""

from twaforge.generator.images import Icon, IconDefinition, ImageHelper
from twaforge.generator.project import Progress, TwaGenerator

__all__ = ["Icon", "IconDefinition", "ImageHelper", "Progress", "TwaGenerator"]

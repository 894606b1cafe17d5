"""Tab organizer: categorize browser tabs and keep native tab groups in sync."""
from .organizer import TabOrganizer
from .models import CacheEntry, CategoryDefinition, CategoryResult, TabDescriptor

__version__ = "1.0.0"

__all__ = ["TabOrganizer", "CacheEntry", "CategoryDefinition", "CategoryResult", "TabDescriptor"]

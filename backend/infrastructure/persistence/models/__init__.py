"""
Persistence Models Package.

All Django ORM models for the Metreur system.
"""

# Base mixins
from .base import (
    TimeStampedMixin,
    TrackedModel,
)

# User models
from .users import User

# Catalog (read-only reference data)
from .catalog import CatalogArticle

# Project models
from .project import (
    Project,
    ProjectTeamMember,
)

# Hierarchy models
from .hierarchy import (
    StructureActionChoices,
    Lot,
    ProjectLot,
    Ouvrage,
    Bloc,
    Structure,
    ProjectArticle,
)

# Event log models
from .events import (
    EventActionChoices,
    Event,
    Notification,
)


__all__ = [
    # Base
    'TimeStampedMixin',
    'TrackedModel',
    # Users
    'User',
    # Catalog
    'CatalogArticle',
    # Project
    'Project',
    'ProjectTeamMember',
    # Hierarchy
    'StructureActionChoices',
    'Lot',
    'ProjectLot',
    'Ouvrage',
    'Bloc',
    'Structure',
    'ProjectArticle',
    # Events
    'EventActionChoices',
    'Event',
    'Notification',
]

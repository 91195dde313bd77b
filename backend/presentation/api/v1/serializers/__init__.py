"""
Serializers Package.

All API serializers for Metreur.
"""

from .base import BaseModelSerializer, UserMinimalSerializer

from .users import (
    UserListSerializer,
    UserProfileSerializer,
    LoginSerializer,
)

from .catalog import CatalogArticleSerializer

from .project import (
    ProjectTeamMemberSerializer,
    ProjectListSerializer,
    ProjectDetailSerializer,
    ProjectWriteSerializer,
    TeamUpdateSerializer,
    ReorderSerializer,
)

from .hierarchy import (
    ProjectLotSerializer,
    ProjectLotCreateSerializer,
    OuvrageSerializer,
    OuvrageCreateSerializer,
    OuvrageUpdateSerializer,
    OuvrageDuplicateSerializer,
    BlocSerializer,
    BlocCreateSerializer,
    BlocAttachSerializer,
    BlocUpdateSerializer,
    ProjectArticleSerializer,
    ProjectArticleCreateSerializer,
    ProjectArticleUpdateSerializer,
)

from .events import (
    EventSerializer,
    NotificationSerializer,
    MarkReadSerializer,
)

__all__ = [
    'BaseModelSerializer',
    'UserMinimalSerializer',
    'UserListSerializer',
    'UserProfileSerializer',
    'LoginSerializer',
    'CatalogArticleSerializer',
    'ProjectTeamMemberSerializer',
    'ProjectListSerializer',
    'ProjectDetailSerializer',
    'ProjectWriteSerializer',
    'TeamUpdateSerializer',
    'ReorderSerializer',
    'ProjectLotSerializer',
    'ProjectLotCreateSerializer',
    'OuvrageSerializer',
    'OuvrageCreateSerializer',
    'OuvrageUpdateSerializer',
    'OuvrageDuplicateSerializer',
    'BlocSerializer',
    'BlocCreateSerializer',
    'BlocAttachSerializer',
    'BlocUpdateSerializer',
    'ProjectArticleSerializer',
    'ProjectArticleCreateSerializer',
    'ProjectArticleUpdateSerializer',
    'EventSerializer',
    'NotificationSerializer',
    'MarkReadSerializer',
]

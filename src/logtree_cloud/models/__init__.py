"""SQLAlchemy ORM models for Logtree Cloud."""

from logtree_cloud.models.activity import FavoriteFolder, FolderPreference, LastCheckedFolder
from logtree_cloud.models.api_key import ApiKey
from logtree_cloud.models.base import Base
from logtree_cloud.models.folder import Folder
from logtree_cloud.models.funnel import Funnel
from logtree_cloud.models.log import Log
from logtree_cloud.models.organization import Organization
from logtree_cloud.models.route_monitor import RouteMonitor, RouteMonitorSnapshot
from logtree_cloud.models.rule import ComparisonType, NotificationType, Rule
from logtree_cloud.models.user import User

__all__ = [
    "ApiKey",
    "Base",
    "ComparisonType",
    "FavoriteFolder",
    "Folder",
    "FolderPreference",
    "Funnel",
    "LastCheckedFolder",
    "Log",
    "NotificationType",
    "Organization",
    "RouteMonitor",
    "RouteMonitorSnapshot",
    "Rule",
    "User",
]

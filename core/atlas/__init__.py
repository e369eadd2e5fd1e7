"""
core/atlas - Atlas Admin API 연동

Example:
    from core.atlas import AtlasClient, load_credentials

    with AtlasClient(load_credentials()) as client:
        projects = client.list_projects()
"""

from .client import AtlasClient
from .credentials import AtlasCredentials, load_credentials
from .models import AccessLogEntry, ClusterTarget, Project, parse_timestamp

__all__: list[str] = [
    "AtlasClient",
    "AtlasCredentials",
    "load_credentials",
    "AccessLogEntry",
    "ClusterTarget",
    "Project",
    "parse_timestamp",
]

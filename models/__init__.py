from .access_log import AccessVia, ZoneAccessLog
from .zone import Zone, ZoneVisibility
from .zone_file import FileKind, ZoneFile

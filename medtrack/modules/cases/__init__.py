"""Cases: shared patient groupings with members and roles."""

from medtrack.modules.cases.models import Case

__all__ = ["Case"]

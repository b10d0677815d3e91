"""Care professionals referenced by entries."""

from medtrack.modules.professionals.models import Professional

__all__ = ["Professional"]

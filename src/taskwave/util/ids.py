"""ID generation utilities."""

from datetime import datetime
from secrets import token_hex


def new_workflow_id(now: datetime | None = None) -> str:
    """Create workflow id: YYYYMMDD_HHMMSS_<6chars>."""
    current = now or datetime.now().astimezone()
    return f"{current.strftime('%Y%m%d_%H%M%S')}_{token_hex(3)}"

"""Pydantic schemas for request/response validation."""

from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .health import *  # noqa: F403
from .inventory import *  # noqa: F403
from .payment import *  # noqa: F403
from .registry import *  # noqa: F403
from .user import *  # noqa: F403

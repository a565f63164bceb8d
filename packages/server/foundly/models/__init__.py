# Document tables, registered on the metadata for create_all
from .base import UUIDMixin, TimestampMixin, VersionMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401

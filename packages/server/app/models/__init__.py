# SQLModel definitions — imported here to ensure metadata is populated for create_all.
from .document import StoredDocument  # noqa: F401

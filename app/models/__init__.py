"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from app.models.progress import Progress

__all__ = ["Progress"]

"""ORM models; importing the package registers every table on the metadata."""

from .customizations import Customization
from .queue_jobs import QueueJob

__all__ = ["Customization", "QueueJob"]

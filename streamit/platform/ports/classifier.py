from typing import Protocol, runtime_checkable
from streamit.modules.videos.models import Video

@runtime_checkable
class ClassifierPort(Protocol):
    """Assigns a sensitivity label ("safe" or "flagged") to a processed item."""

    async def classify(self, item: Video) -> str: ...

import random
from streamit.platform.ports.classifier import ClassifierPort
from streamit.modules.videos.models import Video, Sensitivity

class RandomClassifier(ClassifierPort):
    """
    Placeholder sensitivity detector: coin flip weighted towards "safe".
    Swap for a real model by registering another ClassifierPort.
    """
    def __init__(self, safe_probability: float = 0.85, rng: random.Random | None = None):
        if not 0.0 <= safe_probability <= 1.0:
            raise ValueError("safe_probability must be within [0, 1]")
        self.safe_probability = safe_probability
        self._rng = rng or random.Random()

    async def classify(self, item: Video) -> str:
        if self._rng.random() < self.safe_probability:
            return Sensitivity.safe.value
        return Sensitivity.flagged.value

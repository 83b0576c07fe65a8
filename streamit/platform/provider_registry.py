from streamit.core.config import settings
from streamit.core.db import SessionLocal
from streamit.platform.ports.object_storage import ObjectStoragePort
from streamit.platform.adapters.storage_local import LocalFilesystemStorage
from streamit.platform.adapters.storage_s3 import S3Storage
from streamit.platform.ports.event_bus import EventBusPort
from streamit.platform.adapters.bus_noop import NoopEventBus
from streamit.platform.adapters.bus_redis import RedisEventBus
from streamit.platform.ports.media_probe import MediaProbePort
from streamit.platform.adapters.probe_ffprobe import FfprobeProbe
from streamit.platform.ports.classifier import ClassifierPort
from streamit.platform.adapters.classifier_random import RandomClassifier
from streamit.modules.realtime.broadcaster import Broadcaster
from streamit.modules.videos.pipeline import PipelineRunner

class ProviderRegistry:
    _object_storage: ObjectStoragePort | None = None
    _event_bus: EventBusPort | None = None
    _prober: MediaProbePort | None = None
    _classifier: ClassifierPort | None = None
    _broadcaster: Broadcaster | None = None
    _pipeline: PipelineRunner | None = None

    @classmethod
    def object_storage(cls) -> ObjectStoragePort:
        if cls._object_storage is None:
            if settings.OBJECT_STORAGE_PROVIDER == "s3":
                cls._object_storage = S3Storage()
            else:
                cls._object_storage = LocalFilesystemStorage(settings.LOCAL_STORAGE_ROOT)
        return cls._object_storage

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = NoopEventBus()
        return cls._event_bus

    @classmethod
    def prober(cls) -> MediaProbePort:
        if cls._prober is None:
            cls._prober = FfprobeProbe()
        return cls._prober

    @classmethod
    def classifier(cls) -> ClassifierPort:
        if cls._classifier is None:
            # Only the stub ships today. Register a model-backed ClassifierPort here.
            cls._classifier = RandomClassifier(settings.CLASSIFIER_SAFE_PROBABILITY)
        return cls._classifier

    @classmethod
    def broadcaster(cls) -> Broadcaster:
        if cls._broadcaster is None:
            cls._broadcaster = Broadcaster(cls.event_bus(), queue_size=settings.EVENTS_QUEUE_SIZE)
        return cls._broadcaster

    @classmethod
    def pipeline(cls) -> PipelineRunner:
        if cls._pipeline is None:
            cls._pipeline = PipelineRunner(
                SessionLocal,
                cls.object_storage(),
                cls.prober(),
                cls.classifier(),
                cls.broadcaster(),
                tick_start=settings.PIPELINE_TICK_START,
                tick_end=settings.PIPELINE_TICK_END,
                tick_step=settings.PIPELINE_TICK_STEP,
                tick_delay=settings.PIPELINE_TICK_DELAY_SECONDS,
            )
        return cls._pipeline

    @classmethod
    def reset(cls) -> None:
        """Drop cached providers so the next call rebuilds them from settings."""
        cls._object_storage = None
        cls._event_bus = None
        cls._prober = None
        cls._classifier = None
        cls._broadcaster = None
        cls._pipeline = None

registry = ProviderRegistry()

"""Tests for platform adapters and token handling."""

import random

import pytest
from botocore.exceptions import ClientError

from streamit.core.security import Principal, issue_token, get_principal, principal_from_claims
from streamit.platform.adapters.classifier_random import RandomClassifier
from streamit.platform.adapters.probe_ffprobe import FfprobeProbe
from streamit.platform.adapters.bus_noop import NoopEventBus
from streamit.platform.adapters.storage_s3 import S3Storage
from streamit.platform.provider_registry import ProviderRegistry


class TestRandomClassifier:
    async def test_extremes_are_deterministic(self):
        assert await RandomClassifier(1.0).classify(None) == "safe"
        assert await RandomClassifier(0.0).classify(None) == "flagged"

    async def test_mostly_safe_with_default_weight(self):
        clf = RandomClassifier(0.85, rng=random.Random(7))
        labels = [await clf.classify(None) for _ in range(2000)]
        share = labels.count("safe") / len(labels)
        assert 0.8 < share < 0.9
        assert set(labels) == {"safe", "flagged"}

    def test_probability_is_validated(self):
        with pytest.raises(ValueError):
            RandomClassifier(1.5)


class TestFfprobe:
    async def test_missing_binary_raises(self, tmp_path):
        probe = FfprobeProbe(binary=str(tmp_path / "no-ffprobe-here"), timeout=1)
        with pytest.raises(FileNotFoundError):
            await probe.duration_seconds(str(tmp_path / "clip.mp4"))


class TestS3Delete:
    @staticmethod
    def _storage(error_code: str) -> S3Storage:
        class Client:
            def delete_object(self, **kwargs):
                raise ClientError({"Error": {"Code": error_code, "Message": "nope"}}, "DeleteObject")

        storage = S3Storage.__new__(S3Storage)
        storage.s3 = Client()
        storage.bucket = "media"
        return storage

    def test_backend_errors_surface_as_oserror(self):
        with pytest.raises(OSError):
            self._storage("AccessDenied").delete("a.mp4")

    def test_missing_object_is_not_an_error(self):
        self._storage("NoSuchKey").delete("a.mp4")


class TestTokens:
    async def test_round_trip(self):
        token = issue_token(Principal(id="alice", role="editor", tenant="acme"))

        class Creds:
            credentials = token

        principal = await get_principal(Creds())
        assert principal == Principal(id="alice", role="editor", tenant="acme")

    async def test_missing_and_bad_tokens_are_anonymous(self):
        class Bad:
            credentials = "garbage"

        assert await get_principal(None) is None
        assert await get_principal(Bad()) is None

    def test_claims_without_identity_are_anonymous(self):
        assert principal_from_claims({"role": "admin"}) is None
        assert principal_from_claims({"sub": 42}).id == "42"


async def test_registry_defaults_follow_settings():
    ProviderRegistry.reset()
    assert isinstance(ProviderRegistry.event_bus(), NoopEventBus)
    assert ProviderRegistry.broadcaster() is ProviderRegistry.broadcaster()
    assert ProviderRegistry.pipeline().tick_delay == 0

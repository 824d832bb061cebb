"""Tests for record envelopes, fingerprints and the blob codec."""

from __future__ import annotations

import hashlib
import json
import time
import zlib

import pytest

from stagecache.cache.envelope import EnvelopeCodec, RecordEnvelope, fingerprint, now_ms, wrap
from stagecache.cache.errors import EnvelopeDecodeError, FingerprintError


class TestFingerprint:
    """Short content digest used for change detection."""

    def test_known_vectors(self):
        assert fingerprint("") == "e3b0c44298fc1c14"
        assert fingerprint("foobar") == "c3ab8ff13720e8ad"
        assert fingerprint({"b": [1, 2], "a": 1}) == "8baa73198470c7bb"

    def test_matches_truncated_sha256(self):
        text = "- [ ] buy milk\n" * 1000
        assert fingerprint(text) == hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]
        assert fingerprint([1, 2, 3]) == hashlib.sha256(b"[1,2,3]").hexdigest()[:16]

    def test_fixed_width_hex(self):
        for value in ["", "x", "- [ ] buy milk" * 500, [1, 2, 3], {"k": None}]:
            digest = fingerprint(value)
            assert len(digest) == 16
            int(digest, 16)

    def test_deterministic(self):
        items = [{"id": "1", "content": "buy milk"}]
        assert fingerprint(items) == fingerprint([{"content": "buy milk", "id": "1"}])

    def test_order_sensitive_for_lists(self):
        assert fingerprint([1, 2]) != fingerprint([2, 1])

    def test_content_change_detected(self):
        assert fingerprint("- [ ] buy milk") != fingerprint("- [ ] buy bread")

    def test_unicode_content(self):
        assert fingerprint("📅 2024-05-01") != fingerprint("📅 2024-05-02")

    def test_unserializable_value_raises(self):
        with pytest.raises(FingerprintError):
            fingerprint({"when": object()})


class TestWrap:
    """Envelope construction."""

    def test_wrap_stamps_fields(self):
        before = now_ms()
        envelope = wrap([{"id": 1}], "1.2.3", 4, "source text", source_modified_at=1700)
        after = now_ms()

        assert envelope.payload == [{"id": 1}]
        assert envelope.app_version == "1.2.3"
        assert envelope.schema_revision == 4
        assert envelope.fingerprint == fingerprint("source text")
        assert envelope.source_modified_at == 1700
        assert before <= envelope.written_at <= after

    def test_written_at_is_milliseconds(self):
        envelope = wrap({}, "1.0.0", 1, {})
        assert abs(envelope.written_at - time.time() * 1000) < 60_000

    def test_mtime_absent_by_default(self):
        envelope = wrap([], "1.0.0", 1, [])
        assert envelope.source_modified_at is None
        assert "mtime" not in envelope.to_dict()


class TestEnvelopeCodec:
    """Blob encoding and decoding."""

    @pytest.fixture
    def envelope(self) -> RecordEnvelope:
        return RecordEnvelope(
            fingerprint="abc",
            written_at=1700000000000,
            app_version="1.0.0",
            schema_revision=1,
            payload=[{"content": "buy milk"}],
            source_modified_at=1699999999000,
        )

    def test_persisted_layout(self, envelope):
        data = json.loads(EnvelopeCodec().encode(envelope))
        assert data == {
            "hash": "abc",
            "time": 1700000000000,
            "version": "1.0.0",
            "schema": 1,
            "data": [{"content": "buy milk"}],
            "mtime": 1699999999000,
        }

    def test_decode_restores_envelope(self, envelope):
        codec = EnvelopeCodec()
        assert codec.decode(codec.encode(envelope)) == envelope

    def test_compressed_blob_is_zlib(self, envelope):
        blob = EnvelopeCodec(compress=True).encode(envelope)
        assert json.loads(zlib.decompress(blob))["hash"] == "abc"

    def test_compression_detected_on_decode(self, envelope):
        plain = EnvelopeCodec(compress=False).encode(envelope)
        packed = EnvelopeCodec(compress=True).encode(envelope)
        assert EnvelopeCodec(compress=True).decode(plain) == envelope
        assert EnvelopeCodec(compress=False).decode(packed) == envelope

    def test_payload_hooks(self, envelope):
        codec = EnvelopeCodec()
        blob = codec.encode(envelope, payload_encoder=lambda items: {"items": items})
        assert json.loads(blob)["data"] == {"items": [{"content": "buy milk"}]}

        decoded = codec.decode(blob, payload_decoder=lambda data: data["items"])
        assert decoded.payload == envelope.payload

    @pytest.mark.parametrize(
        "blob",
        [
            b"",
            b"not json at all",
            b"\xff\xfe\x00",
            b"[1, 2, 3]",
            b'{"hash": "abc"}',
            b'{"hash": 1, "time": 1, "version": "1", "schema": 1, "data": []}',
            b'{"hash": "a", "time": "now", "version": "1", "schema": 1, "data": []}',
            b'{"hash": "a", "time": 1, "version": "1", "schema": true, "data": []}',
            b'{"hash": "a", "time": 1, "version": "1", "schema": 1, "data": [], "mtime": "x"}',
            b"x\x9c garbage",
        ],
    )
    def test_malformed_blobs_raise(self, blob):
        with pytest.raises(EnvelopeDecodeError):
            EnvelopeCodec().decode(blob)

    def test_payload_decoder_rejection_is_decode_error(self, envelope):
        codec = EnvelopeCodec()
        blob = codec.encode(envelope)

        def reject(data):
            raise TypeError("wrong shape")

        with pytest.raises(EnvelopeDecodeError):
            codec.decode(blob, payload_decoder=reject)

    def test_encode_value_rejects_unserializable(self):
        with pytest.raises(ValueError):
            EnvelopeCodec().encode_value({"bad": {1, 2}})

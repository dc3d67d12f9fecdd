"""Tests for result fingerprints."""

from __future__ import annotations

from bundlecraft.core.fingerprint import RESULT_SCHEME, Fingerprint, compute_fingerprint


class TestFingerprint:
    def test_deterministic(self):
        a = compute_fingerprint({"status": "AUTO", "flags": {"x": False}})
        b = compute_fingerprint({"flags": {"x": False}, "status": "AUTO"})
        assert a.matches(b)
        assert a.scheme == RESULT_SCHEME

    def test_key_order_inside_values_ignored(self):
        a = compute_fingerprint({"flags": {"a": True, "b": False}})
        b = compute_fingerprint({"flags": {"b": False, "a": True}})
        assert a.digest == b.digest

    def test_explain_diff(self):
        a = compute_fingerprint({"status": "AUTO", "flags": {}})
        b = compute_fingerprint({"status": "MANUAL", "flags": {}})
        assert not a.matches(b)
        assert a.explain_diff(b) == ["status changed"]

    def test_scheme_change(self):
        a = compute_fingerprint({"status": "AUTO"}, scheme="bundlecraft:result:v2")
        b = compute_fingerprint({"status": "AUTO"})
        assert not a.matches(b)
        assert a.explain_diff(b) == [f"scheme changed ({RESULT_SCHEME} -> bundlecraft:result:v2)"]

    def test_none(self):
        fp = compute_fingerprint({"status": "AUTO"})
        assert fp.matches(None) is False
        assert fp.explain_diff(None) == ["no stored fingerprint"]

    def test_serialization(self):
        fp = compute_fingerprint({"status": "AUTO"})
        restored = Fingerprint.from_dict(fp.to_dict())
        assert restored == fp
        assert Fingerprint.from_dict({}) is None
        assert len(fp.short) == 12

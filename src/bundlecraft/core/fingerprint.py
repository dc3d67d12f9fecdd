"""Result fingerprinting — self-describing, versioned hashes of assembly output."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass

RESULT_SCHEME = "bundlecraft:result:v1"


@dataclass(frozen=True)
class Fingerprint:
    """A self-describing, versioned hash of an assembly result.

    Each fingerprint records its scheme (how it was generated) and its
    components (what went into it), so two results can explain where
    they differ.
    """

    scheme: str  # e.g. "bundlecraft:result:v1"
    digest: str  # SHA256 hex (full)
    components: dict[str, str]  # component_name -> component_hash

    def matches(self, other: Fingerprint | None) -> bool:
        """Match requires same scheme AND same digest."""
        if other is None:
            return False
        return self.scheme == other.scheme and self.digest == other.digest

    def explain_diff(self, other: Fingerprint | None) -> list[str]:
        """Human-readable list of reasons these fingerprints differ."""
        if other is None:
            return ["no stored fingerprint"]
        if self.scheme != other.scheme:
            return [f"scheme changed ({other.scheme} -> {self.scheme})"]
        changed = []
        all_keys = sorted(set(self.components) | set(other.components))
        for k in all_keys:
            if self.components.get(k) != other.components.get(k):
                changed.append(k)
        return [f"{k} changed" for k in changed] or ["unknown"]

    @property
    def short(self) -> str:
        return self.digest[:12]

    def to_dict(self) -> dict:
        """Serialize to a plain dict suitable for JSON storage."""
        return {
            "scheme": self.scheme,
            "digest": self.digest,
            "components": dict(self.components),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Fingerprint | None:
        """Deserialize from a dict. Returns None if data is empty/missing."""
        if not data or "scheme" not in data:
            return None
        return cls(
            scheme=data["scheme"],
            digest=data["digest"],
            components=data.get("components", {}),
        )


def _hash_value(value) -> str:
    raw = json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()


def compute_fingerprint(components: dict, scheme: str = RESULT_SCHEME) -> Fingerprint:
    """Hash each component, then hash the sorted component hashes together."""
    component_hashes = {name: _hash_value(value) for name, value in components.items()}
    combined = "|".join(f"{k}={component_hashes[k]}" for k in sorted(component_hashes))
    digest = hashlib.sha256(f"{scheme}|{combined}".encode()).hexdigest()
    return Fingerprint(scheme=scheme, digest=digest, components=component_hashes)

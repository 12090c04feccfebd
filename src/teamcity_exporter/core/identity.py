"""Identity hashing for metric samples."""

import hashlib
import json


def identity_hash(name: str, *label_values: str) -> str:
    """Return a deterministic digest of a metric name and its label values.

    Label names are deliberately excluded: the same metric name can be
    emitted with different label schemas, and two samples are the same
    series whenever their name and ordered values match.

    Args:
        name: Metric name.
        *label_values: Label values in label order.

    Returns:
        Hex-encoded SHA-256 digest.
    """
    payload = json.dumps([name, *label_values], ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()

from __future__ import annotations

import pytest

from synclab.utils.net import HttpError, post_json


def test_unreachable_endpoint_raises_http_error() -> None:
    # nothing listens on the discard port locally
    with pytest.raises(HttpError) as ei:
        post_json("http://127.0.0.1:9/translate", {"q": ["hi"]}, timeout_s=2.0)
    assert ei.value.status is None
    assert "127.0.0.1:9" in str(ei.value)

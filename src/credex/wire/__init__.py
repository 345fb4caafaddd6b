"""credex transport -- the push-notification relay client."""
from __future__ import annotations

from credex.wire.push import PushClient

__all__ = ["PushClient"]

"""
Identifier generation.

Entity ids are plain strings so that ids coming from imported documents
(which may predate UUIDs) survive a round trip unchanged.
"""

import random
import time
from uuid import uuid4


def new_id() -> str:
    """
    Return a new collision-resistant entity id.

    Uses a random UUID4. If the platform has no secure random source,
    falls back to a millisecond timestamp plus a random hex suffix.
    """
    try:
        return str(uuid4())
    except NotImplementedError:
        # os.urandom is unavailable on this platform
        return f"id-{int(time.time() * 1000)}-{random.getrandbits(52):x}"

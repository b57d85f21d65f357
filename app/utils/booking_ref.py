import random
import string
from datetime import datetime

CUSTOMER_PREFIX = "RST"
WALK_IN_PREFIX = "WLK"

_SUFFIX_CHARS = string.ascii_uppercase + string.digits


def generate_booking_ref(now: datetime, walk_in: bool = False) -> str:
    """Human-readable reference, e.g. 'RST20240601190312K7QD'.

    Uniqueness is ultimately enforced by the store; callers regenerate on a
    collision.
    """
    prefix = WALK_IN_PREFIX if walk_in else CUSTOMER_PREFIX
    suffix = "".join(random.choices(_SUFFIX_CHARS, k=4))
    return f"{prefix}{now.strftime('%Y%m%d%H%M%S')}{suffix}"

import random
import string
from decimal import Decimal, ROUND_HALF_UP

from django.utils import timezone

ALNUM = string.ascii_uppercase + string.digits


def generate_order_id(prefix="LCB"):
    ts = timezone.now().strftime("%m%d%H%M%S")  # 10 chars
    rand = "".join(random.choices(ALNUM, k=6))
    base = f"{prefix}{ts}{rand}"  # may be >20
    # column holds at most 20 chars
    return base[-20:]


def to_minor_units(amount) -> int:
    """Convert a major-unit amount (``Decimal``, ``str`` or ``int``) to cents."""
    q = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(q)


def from_minor_units(amount_minor: int) -> Decimal:
    return (Decimal(int(amount_minor)) / 100).quantize(Decimal("0.01"))

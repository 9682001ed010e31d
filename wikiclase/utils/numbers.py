from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value):
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(part, whole):
    """``part`` as a percentage of ``whole``; 0 when ``whole`` is 0."""
    return (part / whole) * 100 if whole else 0

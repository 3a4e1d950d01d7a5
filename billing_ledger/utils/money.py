"""Cent-accurate money helpers"""

from typing import List


def split_evenly(total_cents: int, parts: int) -> List[int]:
    """
    Divide an amount into `parts` integer-cent slices.

    All slices get total // parts; the remainder goes entirely to the last one,
    so the slices always sum back to the exact total.

    Example:
        split_evenly(40003, 4) -> [10000, 10000, 10000, 10003]
    """
    if parts < 1:
        raise ValueError(f"parts must be >= 1, got {parts}")
    if total_cents < 0:
        raise ValueError(f"total_cents must be >= 0, got {total_cents}")

    base_amount = total_cents // parts
    remainder = total_cents - base_amount * parts

    amounts = [base_amount] * parts
    amounts[-1] += remainder
    return amounts

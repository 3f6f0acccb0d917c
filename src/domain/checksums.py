"""
Checksum engine - Numeric check-digit algorithms for identifiers.

Pure, deterministic functions used by the format validators:

- Business number: weighted modulus-89 checksum over 11 digits
- Payment card number: Luhn (mod 10) checksum over 13-19 digits

Both accept a digits-only string and return False (never raise) for
anything else.
"""

BUSINESS_NUMBER_LENGTH = 11
BUSINESS_NUMBER_WEIGHTS = (10, 1, 3, 5, 7, 9, 11, 13, 15, 17, 19)
BUSINESS_NUMBER_MODULUS = 89

CARD_NUMBER_MIN_LENGTH = 13
CARD_NUMBER_MAX_LENGTH = 19


def business_number_checksum(digits: str) -> bool:
    """
    Check the weighted modulus-89 checksum of an 11-digit business number.

    Algorithm:
    1. Subtract 1 from the first digit
    2. Multiply each digit by its weight: [10, 1, 3, 5, 7, 9, 11, 13, 15, 17, 19]
    3. Sum all products
    4. Valid iff the sum is divisible by 89

    A leading zero contributes (0 - 1) * 10 = -10 to the sum. The negative
    term is kept as-is; Python's modulus on the signed sum gives the
    reference result.

    Args:
        digits: Normalized business number (digits only)

    Returns:
        True if the checksum holds, False otherwise (including bad input)
    """
    if len(digits) != BUSINESS_NUMBER_LENGTH or not digits.isascii() or not digits.isdigit():
        return False

    values = [int(d) for d in digits]
    values[0] -= 1

    total = sum(value * weight for value, weight in zip(values, BUSINESS_NUMBER_WEIGHTS))
    return total % BUSINESS_NUMBER_MODULUS == 0


def luhn_checksum(digits: str) -> bool:
    """
    Check the Luhn checksum of a payment card number.

    Walks the digits right to left, doubling every second digit and
    subtracting 9 when the doubled value exceeds 9. Valid iff the total
    is divisible by 10.

    Args:
        digits: Normalized card number (digits only, 13-19 long)

    Returns:
        True if the checksum holds, False otherwise (including bad input)
    """
    if not digits.isascii() or not digits.isdigit():
        return False
    if not CARD_NUMBER_MIN_LENGTH <= len(digits) <= CARD_NUMBER_MAX_LENGTH:
        return False

    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    return total % 10 == 0

"""Loan amortization - implied monthly interest rate from a fixed payment"""

from billing_ledger.domain.models import LoanCalculation

MAX_ITERATIONS = 100
TOLERANCE = 1e-10
EPSILON = 1e-15

# Admissible monthly rate: 0% to 100%
MIN_RATE = 0.0
MAX_RATE = 1.0


def annuity_payment(principal: float, rate: float, installments: int) -> float:
    """
    Fixed payment that amortizes `principal` over `installments` periods.

    Price formula: A = (P * i) / (1 - (1 + i)^-n); with i == 0 it degrades to P / n.
    """
    if rate == 0:
        return principal / installments
    return (principal * rate) / (1 - (1 + rate) ** -installments)


def solve_monthly_interest_rate(principal: int, installments: int, installment_amount: int) -> float:
    """
    Solve the annuity identity for the monthly rate with Newton-Raphson.

    Starts from the linear approximation i0 = (A*n - P) / (P*n) and iterates
    i' = i - f(i)/f'(i) with f(i) = A - P*i / (1 - (1+i)^-n).

    Stops after MAX_ITERATIONS, when successive iterates differ by less than
    TOLERANCE, when the denominator or derivative is negligible, or when the
    next iterate leaves [0, 1]. The starting guess is clamped into that
    range, so the result never exceeds 100% per month. Non-convergence is
    not an error: the best estimate so far is returned.

    Returns:
        Monthly rate as a percentage (0.0215 -> 2.15)
    """
    if principal <= 0:
        raise ValueError(f"principal must be positive, got {principal}")
    if installments < 1:
        raise ValueError(f"installments must be >= 1, got {installments}")

    if installment_amount * installments == principal:
        return 0.0

    n = installments
    rate = (installment_amount * n - principal) / (principal * n)
    rate = min(max(rate, MIN_RATE), MAX_RATE)

    for _ in range(MAX_ITERATIONS):
        one_plus_rate = 1 + rate
        denominator = 1 - one_plus_rate ** -n
        if abs(denominator) < EPSILON:
            break

        f = installment_amount - (principal * rate) / denominator

        # d/di [P*i / D(i)] with D'(i) = n * (1+i)^(-n-1)
        numerator_derivative = principal * (denominator - rate * n * one_plus_rate ** (-n - 1))
        f_prime = -numerator_derivative / denominator ** 2
        if abs(f_prime) < EPSILON:
            break

        new_rate = rate - f / f_prime
        if not MIN_RATE <= new_rate <= MAX_RATE:
            break

        if abs(new_rate - rate) < TOLERANCE:
            rate = new_rate
            break

        rate = new_rate

    return rate * 100


def calculate_loan_amounts(principal: int, installments: int, installment_amount: int) -> LoanCalculation:
    """
    Derive the loan figures stored on a LOAN account.

    The principal stays the account total; what is actually repaid
    (installment_amount * installments) is reported separately.
    """
    total_with_interest = installment_amount * installments
    return LoanCalculation(
        total_amount=principal,
        monthly_payment=installment_amount,
        total_with_interest=total_with_interest,
        total_interest=total_with_interest - principal,
        monthly_interest_rate=solve_monthly_interest_rate(principal, installments, installment_amount),
    )

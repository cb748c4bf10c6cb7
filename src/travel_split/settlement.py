"""Settlement engine: per-person balances and the transfers that clear them.

Everything in this module is a pure function of its arguments. Callers pass
participants, expenses and a rate table in; nothing here touches the
database, the network or the console.
"""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, localcontext

from .models import Expense, Participant, PersonBalance, SettlementResult

logger = logging.getLogger(__name__)

# Transfers at or below this amount are noise, and balances below it count as settled
SETTLEMENT_THRESHOLD = 0.01

# Currencies displayed without a fractional part
INTEGER_CURRENCIES = {"JPY": "¥"}

_UNIT = Decimal("1")

# Enough digits to hold the integer part of any finite float
_PRECISION = 400


def _round_half_up(amount: float) -> Decimal:
    """Round the exact binary value of a finite float to an integer, halves up."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(amount).quantize(_UNIT, rounding=ROUND_HALF_UP)


def round_cents(amount: float) -> float:
    """
    Round an amount to 2 decimal places, halves away from zero.

    The amount is scaled by 100 in float arithmetic and then rounded, so
    1.005 (100.4999... once scaled) becomes 1.0. Infinities, NaN and
    amounts too large to scale are returned unchanged.

    Args:
        amount: Amount to round

    Returns:
        Rounded amount
    """
    scaled = amount * 100
    if not math.isfinite(scaled):
        return amount
    return float(_round_half_up(scaled)) / 100


def convert_currency(
    amount: float,
    from_currency: str,
    to_currency: str,
    rates: dict[str, float],
) -> float:
    """
    Convert an amount into the settlement currency.

    The rate table holds units of each currency per 1 unit of the target
    currency, so the lookup is keyed by the source currency only and the
    amount is divided by it. A missing rate counts as 1.

    Args:
        amount: Amount in from_currency
        from_currency: Currency the amount was paid in
        to_currency: Settlement currency
        rates: Currency code -> units per 1 unit of to_currency

    Returns:
        The amount unchanged when the currencies match, otherwise the
        converted amount rounded to 2 decimal places
    """
    if from_currency == to_currency:
        return amount

    rate = rates.get(from_currency) or 1
    return round_cents(amount / rate)


def accumulate_balances(
    participants: list[Participant],
    expenses: list[Expense],
    target_currency: str,
    rates: dict[str, float],
) -> list[PersonBalance]:
    """
    Fold the expense ledger into one balance per participant.

    Expense amounts are credited to the payer and split evenly across the
    beneficiaries. Ids that match no participant are skipped, and an expense
    without beneficiaries only credits its payer.

    Args:
        participants: Group members, in display order
        expenses: Expense ledger, in entry order
        target_currency: Currency all balances are expressed in
        rates: Rate table for convert_currency

    Returns:
        Balances in the same order as participants
    """
    balances = [PersonBalance(id=p.id, name=p.name) for p in participants]
    by_id = {b.id: b for b in balances}

    for expense in expenses:
        converted = convert_currency(
            expense.amount, expense.currency, target_currency, rates
        )

        payer = by_id.get(expense.payer)
        if payer is not None:
            payer.total_paid += converted
        else:
            logger.warning(
                f"Expense {expense.id} has unknown payer {expense.payer}, skipping"
            )

        if not expense.beneficiaries:
            logger.warning(f"Expense {expense.id} has no beneficiaries")
            continue

        share = converted / len(expense.beneficiaries)
        for beneficiary_id in expense.beneficiaries:
            beneficiary = by_id.get(beneficiary_id)
            if beneficiary is not None:
                beneficiary.total_owed += share
            else:
                logger.warning(
                    f"Expense {expense.id} has unknown beneficiary "
                    f"{beneficiary_id}, skipping"
                )

    for b in balances:
        b.balance = b.total_paid - b.total_owed
        logger.debug(
            f"{b.name}: paid={b.total_paid:.2f}, owed={b.total_owed:.2f}, "
            f"balance={b.balance:.2f}"
        )

    return balances


def _settled(balance: float) -> bool:
    # NaN (inf - inf) counts as settled so the cursor still advances
    return not abs(balance) >= SETTLEMENT_THRESHOLD


def reduce_transfers(balances: list[PersonBalance]) -> list[SettlementResult]:
    """
    Turn net balances into a short list of debtor -> creditor transfers.

    Greedy matching: the largest creditor is paired with the largest debtor,
    the smaller side is paid off in full, and whichever side reaches zero is
    replaced by the next one. The input balances are not modified.

    Args:
        balances: Net balance per participant

    Returns:
        Transfers in the order they were matched
    """
    creditors = sorted(
        (b.model_copy() for b in balances if b.balance > 0),
        key=lambda b: b.balance,
        reverse=True,
    )
    debtors = sorted(
        (b.model_copy() for b in balances if b.balance < 0),
        key=lambda b: b.balance,
    )

    logger.debug(f"Creditors: {[(c.name, round(c.balance, 2)) for c in creditors]}")
    logger.debug(f"Debtors: {[(d.name, round(d.balance, 2)) for d in debtors]}")

    settlements: list[SettlementResult] = []
    creditor_idx = 0
    debtor_idx = 0

    while creditor_idx < len(creditors) and debtor_idx < len(debtors):
        creditor = creditors[creditor_idx]
        debtor = debtors[debtor_idx]

        amount = min(creditor.balance, abs(debtor.balance))

        if amount > SETTLEMENT_THRESHOLD:
            settlements.append(
                SettlementResult(
                    from_id=debtor.id,
                    to_id=creditor.id,
                    amount=round_cents(amount),
                    from_name=debtor.name,
                    to_name=creditor.name,
                )
            )

        creditor.balance -= amount
        debtor.balance += amount

        if _settled(creditor.balance):
            creditor_idx += 1
        if _settled(debtor.balance):
            debtor_idx += 1

    return settlements


def calculate_settlement(
    participants: list[Participant],
    expenses: list[Expense],
    target_currency: str,
    rates: dict[str, float],
) -> list[SettlementResult]:
    """Compute the transfers that settle all expenses in target_currency."""
    logger.info(
        f"Calculating settlement for {len(participants)} participants, "
        f"{len(expenses)} expenses in {target_currency}"
    )

    balances = accumulate_balances(participants, expenses, target_currency, rates)
    settlements = reduce_transfers(balances)

    logger.info(f"Settlement needs {len(settlements)} transfers")
    return settlements


def total_settlement_amount(settlements: list[SettlementResult]) -> float:
    """Sum of all transfer amounts."""
    return sum(s.amount for s in settlements)


def format_amount(amount: float, currency: str) -> str:
    """
    Format a settlement amount for display.

    Integer-style currencies get their symbol and thousands separators with
    no decimals (¥12,345); everything else is the code plus 2 decimals
    (USD 12.50). Halves round away from zero in both cases.
    """
    symbol = INTEGER_CURRENCIES.get(currency)
    if symbol:
        if math.isfinite(amount):
            amount = _round_half_up(amount)
        return f"{symbol}{amount:,.0f}"
    return f"{currency} {round_cents(amount):.2f}"

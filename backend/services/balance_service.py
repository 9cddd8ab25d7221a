"""
Manual balance adjustments.

Adjustments touch one named sub-balance, write a BalanceHistory row and an
AdminLog entry in the caller's session. Amounts are plain floats rounded to
cents; the back-office is not a ledger.
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import flag_modified

from models.models import (
    BALANCE_TYPES, AdminLog, BalanceHistory, BalanceOperation, Player, default_balances
)
from utils.error_codes import AppError
from utils.logging import get_logger

logger = get_logger("balance-service")


def apply_operation(current: float, operation: BalanceOperation, amount: float) -> float:
    """New balance after ``operation``; subtracting past zero raises GAME_402."""
    if operation == BalanceOperation.ADD:
        return round(current + amount, 2)
    if operation == BalanceOperation.SUBTRACT:
        if amount > current:
            raise AppError(
                "GAME_402",
                f"Cannot subtract {amount:.2f}, balance is {current:.2f}",
                {"current": current, "amount": amount},
            )
        return round(current - amount, 2)
    return round(amount, 2)


async def write_admin_log(
    session: AsyncSession,
    admin_id,
    action: str,
    details: Optional[Dict[str, Any]] = None,
) -> AdminLog:
    entry = AdminLog(admin_id=admin_id, action=action, details=details or {})
    session.add(entry)
    return entry


async def adjust_balance(
    session: AsyncSession,
    player: Player,
    balance_type: str,
    operation: BalanceOperation,
    amount: float,
    admin_id=None,
    note: Optional[str] = None,
) -> BalanceHistory:
    """Apply one adjustment to ``player`` and record it."""
    if balance_type not in BALANCE_TYPES:
        raise ValueError(f"Unknown balance type: {balance_type}")

    balances = {**default_balances(), **(player.balances or {})}
    old_amount = float(balances[balance_type])
    new_amount = apply_operation(old_amount, operation, amount)

    balances[balance_type] = new_amount
    player.balances = balances
    flag_modified(player, "balances")

    history = BalanceHistory(
        player_id=player.id,
        balance_type=balance_type,
        old_amount=old_amount,
        new_amount=new_amount,
        operation=operation,
        admin_id=admin_id,
        admin_note=note,
    )
    session.add(history)
    await write_admin_log(
        session,
        admin_id,
        "BALANCE_ADJUSTMENT",
        {
            "player_id": str(player.id),
            "balance_type": balance_type,
            "operation": operation.value,
            "amount": amount,
            "old_amount": old_amount,
            "new_amount": new_amount,
        },
    )
    await session.flush()

    logger.info(
        "Balance adjusted",
        extra={
            "data": {
                "player_id": str(player.id),
                "balance_type": balance_type,
                "operation": operation.value,
                "old_amount": old_amount,
                "new_amount": new_amount,
            }
        }
    )
    return history

"""Custody steps: lock the mix amount, then withdraw it for conversion."""

import logging
from decimal import Decimal

from lnmixer.custody.base import CustodyClient, DepositReceipt, WithdrawalReceipt
from lnmixer.errors import CustodyError, InvariantViolation, MixError
from lnmixer.models import EventType
from lnmixer.orchestrator.events import ProgressEmitter

logger = logging.getLogger(__name__)


async def step_deposit(custody: CustodyClient, amount: Decimal, emit: ProgressEmitter) -> DepositReceipt:
    emit.emit(EventType.DEPOSIT_INITIATED, f"Depositing {amount} {custody.asset} into custody")
    try:
        receipt = await custody.deposit(amount)
    except MixError:
        raise
    except Exception as e:
        raise CustodyError(f"Deposit failed: {e}", {"amount": str(amount)}) from e

    if not receipt.commitment_id:
        raise InvariantViolation("Custody deposit returned no commitment id")
    logger.info(f"Deposited {amount} {custody.asset}, commitment {receipt.commitment_id}")
    return receipt


async def step_withdraw_for_mixing(
    custody: CustodyClient, deposit: DepositReceipt, emit: ProgressEmitter
) -> WithdrawalReceipt:
    try:
        receipt = await custody.withdraw(deposit)
    except MixError:
        raise
    except Exception as e:
        raise CustodyError(
            f"Withdrawal failed: {e}", {"commitment_id": deposit.commitment_id}
        ) from e

    if not receipt.tx_hash:
        raise InvariantViolation(
            "Custody withdrawal returned no transaction hash",
            {"commitment_id": deposit.commitment_id},
        )

    emit.emit(
        EventType.DEPOSIT_CONFIRMED,
        f"Custody deposit confirmed ({deposit.commitment_id[:16]}...)",
        progress=10,
        details={"commitment_id": deposit.commitment_id, "tx_hash": deposit.tx_hash},
    )
    emit.emit(
        EventType.MIX_PROGRESS,
        f"Withdrew {receipt.amount} {custody.asset} to {receipt.controlling_address}",
        progress=15,
        details={"tx_hash": receipt.tx_hash},
    )
    return receipt

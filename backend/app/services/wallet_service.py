"""
钱包服务
退款以钱包余额形式入账
"""
import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional
from sqlalchemy.orm import Session

from app.models.orm import Wallet, WalletTransaction, WalletTransactionType
from app.models.events import EventType, WalletCreditedData
from core.domain.errors import ValidationError
from core.domain.money import ZERO, to_money
from core.engine.event_bus import event_bus, Event

logger = logging.getLogger(__name__)


class WalletService:
    """钱包服务（不提交事务，由调用方统一提交）"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish

    def get_wallet(self, user_id: int) -> Optional[Wallet]:
        """获取钱包"""
        return self.db.query(Wallet).filter(Wallet.user_id == user_id).first()

    def get_or_create_wallet(self, user_id: int) -> Wallet:
        """获取钱包，不存在则创建"""
        wallet = self.get_wallet(user_id)
        if wallet is None:
            wallet = Wallet(
                user_id=user_id,
                balance=ZERO,
                total_earned=ZERO,
                total_spent=ZERO,
                status="active",
            )
            self.db.add(wallet)
            self.db.flush()
            logger.info(f"Wallet created for user {user_id}")
        return wallet

    def get_balance(self, user_id: int) -> Decimal:
        """获取余额"""
        wallet = self.get_wallet(user_id)
        return to_money(wallet.balance) if wallet else ZERO

    def get_summary(self, user_id: int) -> Dict[str, Any]:
        """钱包概览，未开通钱包时返回零余额"""
        wallet = self.get_wallet(user_id)
        return {
            "user_id": user_id,
            "balance": to_money(wallet.balance) if wallet else ZERO,
            "total_earned": to_money(wallet.total_earned) if wallet else ZERO,
            "total_spent": to_money(wallet.total_spent) if wallet else ZERO,
            "status": wallet.status if wallet else "active",
        }

    def get_transactions(self, user_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """钱包流水，按时间倒序分页"""
        query = self.db.query(WalletTransaction).filter(WalletTransaction.user_id == user_id)
        total = query.count()
        transactions = query.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()
        return {
            "transactions": transactions,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": max(1, math.ceil(total / limit)),
        }

    def credit(self, user_id: int, amount: Decimal, source: str,
               description: Optional[str] = None,
               reference_id: Optional[str] = None,
               reference_type: Optional[str] = None) -> WalletTransaction:
        """
        钱包入账

        Args:
            user_id: 用户ID
            amount: 入账金额（> 0）
            source: 来源（如 refund）
            description: 流水说明
            reference_id / reference_type: 关联业务对象
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("入账金额必须大于 0", field="amount", value=amount)

        wallet = self.get_or_create_wallet(user_id)
        wallet.balance = to_money(wallet.balance) + amount
        wallet.total_earned = to_money(wallet.total_earned) + amount

        transaction = WalletTransaction(
            wallet_id=wallet.id,
            user_id=user_id,
            type=WalletTransactionType.CREDIT,
            source=source,
            amount=amount,
            balance_after=wallet.balance,
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
        )
        self.db.add(transaction)
        self.db.flush()

        logger.info(f"Wallet {wallet.id} credited {amount} from {source} (balance {wallet.balance})")

        self._publish_event(Event(
            event_type=EventType.WALLET_CREDITED,
            timestamp=datetime.now(),
            data=WalletCreditedData(
                wallet_id=wallet.id,
                user_id=user_id,
                amount=amount,
                balance_after=wallet.balance,
                source=source,
                reference_id=reference_id or "",
            ).to_dict(),
            source="wallet_service",
        ))
        return transaction

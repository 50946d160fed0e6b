"""
钱包路由
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.orm import User
from app.models.schemas import WalletResponse, WalletTransactionListResponse
from app.services.wallet_service import WalletService
from app.security.auth import get_current_user

router = APIRouter(prefix="/wallet", tags=["钱包"])


@router.get("/", response_model=WalletResponse)
def get_my_wallet(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """我的钱包余额"""
    service = WalletService(db)
    return service.get_summary(current_user.id)


@router.get("/transactions", response_model=WalletTransactionListResponse)
def get_my_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """我的钱包流水"""
    service = WalletService(db)
    return service.get_transactions(current_user.id, page=page, limit=limit)

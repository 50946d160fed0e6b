"""
数据模型 - SQLAlchemy ORM
酒店、房间、预订、调价规则、退款、钱包、系统配置
金额统一 Numeric(10, 2)，时间统一 naive UTC
"""
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric, JSON,
    ForeignKey, Index, Enum as SQLEnum, text
)
from sqlalchemy.orm import relationship

from app.database import Base
from core.domain.clock import utcnow
from core.domain.pricing import AdjustmentType, AdjustmentStatus
from core.domain.refund import RefundType
from core.domain.refund_lifecycle import RefundStatus


def _enum(enum_cls, **kwargs):
    """按枚举值（而非名称）持久化"""
    return SQLEnum(enum_cls, values_callable=lambda e: [m.value for m in e], **kwargs)


class UserRole(str, Enum):
    """用户角色"""
    USER = "user"                # 普通客人
    HOTEL = "hotel"              # 酒店方
    SUPER_ADMIN = "super_admin"  # 平台管理员


class BookingStatus(str, Enum):
    """预订状态"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMode(str, Enum):
    """支付方式"""
    ONLINE = "online"    # Razorpay 在线支付
    OFFLINE = "offline"  # 到店支付


class PaymentStatus(str, Enum):
    """支付状态"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class RefundMethod(str, Enum):
    """退款渠道"""
    RAZORPAY = "razorpay"
    BANK_TRANSFER = "bank_transfer"
    WALLET = "wallet"


class WalletTransactionType(str, Enum):
    """钱包流水类型"""
    CREDIT = "credit"
    DEBIT = "debit"


class ConfigValueType(str, Enum):
    """配置值类型"""
    BOOLEAN = "boolean"
    STRING = "string"
    NUMBER = "number"
    JSON = "json"
    ARRAY = "array"


# ============== 用户 / 酒店 / 房间 ==============

class User(Base):
    """用户（客人、酒店方、管理员）"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True)
    phone = Column(String(20))
    role = Column(_enum(UserRole), nullable=False, default=UserRole.USER)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    bookings = relationship("Booking", back_populates="user")
    hotels = relationship("Hotel", back_populates="owner")
    wallet = relationship("Wallet", back_populates="user", uselist=False)


class Hotel(Base):
    """酒店"""
    __tablename__ = "hotels"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    city = Column(String(50), nullable=False, index=True)  # 城市标识
    address = Column(Text)
    owner_id = Column(Integer, ForeignKey("users.id"))     # 酒店方账号
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("User", back_populates="hotels")
    rooms = relationship("Room", back_populates="hotel")


class RoomType(Base):
    """房型"""
    __tablename__ = "room_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    rooms = relationship("Room", back_populates="room_type")


class Room(Base):
    """房间"""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False)
    room_type_id = Column(Integer, ForeignKey("room_types.id"))
    name = Column(String(100), nullable=False)
    price_per_night = Column(Numeric(10, 2), nullable=False)  # 基础夜价
    price_per_hour = Column(Numeric(10, 2))                   # 钟点房价格，可为空
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    hotel = relationship("Hotel", back_populates="rooms")
    room_type = relationship("RoomType", back_populates="rooms")


# ============== 预订 / 支付 ==============

class Booking(Base):
    """预订"""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    hotel_id = Column(Integer, ForeignKey("hotels.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    check_in_date = Column(DateTime, nullable=False)
    check_out_date = Column(DateTime, nullable=False)
    guest_count = Column(Integer, default=1)
    total_amount = Column(Numeric(10, 2), nullable=False)   # 已收款金额
    status = Column(_enum(BookingStatus), default=BookingStatus.CONFIRMED)
    cancellation_reason = Column(Text)
    cancelled_by = Column(String(20))                       # user / hotel / admin
    cancelled_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="bookings")
    hotel = relationship("Hotel")
    room = relationship("Room")
    payment = relationship("Payment", back_populates="booking", uselist=False)
    refunds = relationship("Refund", back_populates="booking")


class Payment(Base):
    """支付记录"""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_mode = Column(_enum(PaymentMode), nullable=False)
    status = Column(_enum(PaymentStatus), default=PaymentStatus.COMPLETED)
    razorpay_order_id = Column(String(100))
    razorpay_payment_id = Column(String(100))
    created_at = Column(DateTime, default=utcnow)

    booking = relationship("Booking", back_populates="payment")


# ============== 调价规则 ==============

class PriceAdjustment(Base):
    """调价规则（只下线不物理删除）"""
    __tablename__ = "price_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    cities = Column(JSON, default=list)        # 城市标识列表，空表示不限
    hotels = Column(JSON, default=list)        # 酒店ID列表
    room_types = Column(JSON, default=list)    # 房型ID列表
    adjustment_type = Column(_enum(AdjustmentType), nullable=False)
    adjustment_value = Column(Numeric(10, 2), nullable=False)
    reason = Column(Text)
    effective_date = Column(DateTime, nullable=False, index=True)
    expiry_date = Column(DateTime)             # 为空表示长期有效
    status = Column(_enum(AdjustmentStatus), nullable=False, default=AdjustmentStatus.ACTIVE)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ============== 退款 / 钱包 ==============

class Refund(Base):
    """退款记录"""
    __tablename__ = "refunds"
    __table_args__ = (
        # 同一预订同时只能有一笔处理中的退款
        Index(
            "uq_refunds_pending_booking", "booking_id", unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    original_payment_id = Column(Integer, ForeignKey("payments.id"))
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)   # 客人
    refund_type = Column(_enum(RefundType), nullable=False)
    original_amount = Column(Numeric(10, 2), nullable=False)
    cancellation_fee_amount = Column(Numeric(10, 2), nullable=False, default=0)
    refund_amount = Column(Numeric(10, 2), nullable=False)
    cancellation_fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    refund_reason = Column(Text, nullable=False)
    status = Column(_enum(RefundStatus), nullable=False, default=RefundStatus.PENDING)
    refund_method = Column(_enum(RefundMethod))
    razorpay_refund_id = Column(String(100))
    processed_by = Column(Integer, ForeignKey("users.id"))
    processed_at = Column(DateTime)
    rejection_reason = Column(Text)
    failure_reason = Column(Text)
    bank_details = Column(Text)
    expected_processing_days = Column(Integer, default=7)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    booking = relationship("Booking", back_populates="refunds")
    original_payment = relationship("Payment")
    user = relationship("User", foreign_keys=[user_id])
    processor = relationship("User", foreign_keys=[processed_by])


class Wallet(Base):
    """用户钱包"""
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    balance = Column(Numeric(10, 2), nullable=False, default=0)
    total_earned = Column(Numeric(10, 2), nullable=False, default=0)
    total_spent = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="wallet")
    transactions = relationship("WalletTransaction", back_populates="wallet")


class WalletTransaction(Base):
    """钱包流水"""
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(_enum(WalletTransactionType), nullable=False)
    source = Column(String(50), nullable=False)     # refund / booking / promotion
    amount = Column(Numeric(10, 2), nullable=False)
    balance_after = Column(Numeric(10, 2), nullable=False)
    description = Column(Text)
    reference_id = Column(String(50))
    reference_type = Column(String(50))
    created_at = Column(DateTime, default=utcnow)

    wallet = relationship("Wallet", back_populates="transactions")


# ============== 系统配置 ==============

class Configuration(Base):
    """系统配置（键值对，值以文本存储）"""
    __tablename__ = "configurations"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(Text, nullable=False)
    type = Column(_enum(ConfigValueType), nullable=False)
    description = Column(Text)
    category = Column(String(50), nullable=False, default="app")  # app / booking / payment / ui
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

"""
Pytest 配置和共享 fixtures
"""
import pytest
from datetime import timedelta
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.models.orm import (
    User, UserRole, Hotel, RoomType, Room, Booking, BookingStatus,
    Payment, PaymentMode, PaymentStatus,
)
from app.security.auth import create_access_token
from app.main import app
from core.engine.event_bus import event_bus


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端（不触发 lifespan，避免连接正式数据库）"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clean_event_bus():
    """每个用例前后清空全局事件总线"""
    event_bus.clear()
    yield
    event_bus.clear()


@pytest.fixture
def published_events():
    """收集服务发布的事件（作为 event_publisher 注入）"""
    return []


# ============== 用户 Fixtures ==============

def _make_user(db_session, name, role, email):
    user = User(name=name, email=email, role=role, is_active=True)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def guest_user(db_session):
    """普通客人"""
    return _make_user(db_session, "张三", UserRole.USER, "guest@example.com")


@pytest.fixture
def other_guest(db_session):
    """另一位客人"""
    return _make_user(db_session, "李四", UserRole.USER, "other@example.com")


@pytest.fixture
def hotel_owner(db_session):
    """酒店方账号"""
    return _make_user(db_session, "酒店经理", UserRole.HOTEL, "hotel@example.com")


@pytest.fixture
def admin_user(db_session):
    """平台管理员"""
    return _make_user(db_session, "管理员", UserRole.SUPER_ADMIN, "admin@example.com")


@pytest.fixture
def guest_headers(guest_user):
    return {"Authorization": f"Bearer {create_access_token(guest_user.id, guest_user.role)}"}


@pytest.fixture
def other_guest_headers(other_guest):
    return {"Authorization": f"Bearer {create_access_token(other_guest.id, other_guest.role)}"}


@pytest.fixture
def hotel_headers(hotel_owner):
    return {"Authorization": f"Bearer {create_access_token(hotel_owner.id, hotel_owner.role)}"}


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(admin_user.id, admin_user.role)}"}


# ============== 实体 Fixtures ==============

@pytest.fixture
def sample_hotel(db_session, hotel_owner):
    """孟买的测试酒店"""
    hotel = Hotel(name="海景酒店", city="mumbai", address="Marine Drive 1", owner_id=hotel_owner.id)
    db_session.add(hotel)
    db_session.commit()
    db_session.refresh(hotel)
    return hotel


@pytest.fixture
def sample_room_type(db_session):
    """测试房型"""
    room_type = RoomType(name="豪华间", description="Deluxe")
    db_session.add(room_type)
    db_session.commit()
    db_session.refresh(room_type)
    return room_type


@pytest.fixture
def sample_room(db_session, sample_hotel, sample_room_type):
    """基础夜价 5000 的房间"""
    room = Room(
        hotel_id=sample_hotel.id,
        room_type_id=sample_room_type.id,
        name="1201",
        price_per_night=Decimal("5000.00"),
        price_per_hour=Decimal("800.00"),
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


def make_booking(db_session, user, room, check_in, total_amount="5000.00",
                 payment_mode=PaymentMode.ONLINE, status=BookingStatus.CONFIRMED):
    """创建预订及支付记录"""
    booking = Booking(
        user_id=user.id,
        hotel_id=room.hotel_id,
        room_id=room.id,
        check_in_date=check_in,
        check_out_date=check_in + timedelta(days=1),
        total_amount=Decimal(total_amount),
        status=status,
    )
    db_session.add(booking)
    db_session.flush()
    if payment_mode is not None:
        db_session.add(Payment(
            booking_id=booking.id,
            amount=Decimal(total_amount),
            payment_mode=payment_mode,
            status=PaymentStatus.COMPLETED,
        ))
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def booking_factory(db_session):
    """预订工厂"""
    def factory(user, room, check_in, **kwargs):
        return make_booking(db_session, user, room, check_in, **kwargs)
    return factory

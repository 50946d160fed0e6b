"""
配置服务 - 系统级键值配置
退款档位表等运营策略存放在 configurations 表，可在线修改
"""
import json
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from app.config import settings
from app.models.orm import Configuration, ConfigValueType, PaymentMode
from core.domain.errors import ValidationError
from core.domain.refund import RefundTierTable

logger = logging.getLogger(__name__)

REFUND_FEE_TIERS_KEY = "refund_fee_tiers"
REFUND_DAYS_ONLINE_KEY = "refund_processing_days_online"
REFUND_DAYS_OFFLINE_KEY = "refund_processing_days_offline"


DEFAULT_CONFIGURATIONS: List[Dict[str, Any]] = [
    {
        "key": REFUND_FEE_TIERS_KEY,
        "value": settings.DEFAULT_REFUND_TIERS,
        "type": ConfigValueType.JSON,
        "description": "Cancellation fee tiers, descending by min_hours before check-in",
        "category": "booking",
    },
    {
        "key": REFUND_DAYS_ONLINE_KEY,
        "value": settings.REFUND_PROCESSING_DAYS_ONLINE,
        "type": ConfigValueType.NUMBER,
        "description": "Expected refund processing days for online payments",
        "category": "payment",
    },
    {
        "key": REFUND_DAYS_OFFLINE_KEY,
        "value": settings.REFUND_PROCESSING_DAYS_OFFLINE,
        "type": ConfigValueType.NUMBER,
        "description": "Expected refund processing days for offline payments",
        "category": "payment",
    },
]


def serialize_value(value: Any, value_type: ConfigValueType) -> str:
    """按类型序列化配置值"""
    value_type = ConfigValueType(value_type)
    if value_type in (ConfigValueType.JSON, ConfigValueType.ARRAY):
        if isinstance(value, str):
            # 已是 JSON 文本，校验后原样保存
            parse_value(value, value_type)
            return value
        if value_type == ConfigValueType.ARRAY and not isinstance(value, list):
            raise ValidationError("array 类型配置必须是列表", field="value")
        return json.dumps(value, default=str)
    if value_type == ConfigValueType.BOOLEAN:
        if isinstance(value, str):
            return "true" if value.strip().lower() == "true" else "false"
        return "true" if value else "false"
    if value_type == ConfigValueType.NUMBER:
        parse_value(str(value), value_type)
    return str(value)


def parse_value(raw: str, value_type: ConfigValueType) -> Any:
    """按类型解析配置值"""
    value_type = ConfigValueType(value_type)
    if value_type == ConfigValueType.BOOLEAN:
        return raw.strip().lower() == "true"
    if value_type == ConfigValueType.NUMBER:
        try:
            number = float(raw)
        except ValueError:
            raise ValidationError(f"配置值不是数字: {raw}", field="value")
        return int(number) if number.is_integer() else number
    if value_type in (ConfigValueType.JSON, ConfigValueType.ARRAY):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"配置值不是有效的 JSON: {e}", field="value")
        if value_type == ConfigValueType.ARRAY and not isinstance(parsed, list):
            raise ValidationError("array 类型配置必须是列表", field="value")
        return parsed
    return raw


class ConfigurationService:
    """配置服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, category: Optional[str] = None) -> List[Configuration]:
        """获取配置列表"""
        query = self.db.query(Configuration)
        if category:
            query = query.filter(Configuration.category == category)
        return query.order_by(Configuration.category, Configuration.key).all()

    def get(self, key: str) -> Optional[Configuration]:
        """获取单个配置"""
        return self.db.query(Configuration).filter(Configuration.key == key).first()

    def get_value(self, key: str, default: Any = None) -> Any:
        """获取解析后的配置值，不存在或已停用时返回 default"""
        config = self.get(key)
        if not config or not config.is_active:
            return default
        return parse_value(config.value, config.type)

    def set(self, key: str, value: Any, value_type: ConfigValueType,
            description: Optional[str] = None, category: str = "app") -> Configuration:
        """新增或更新配置"""
        value_type = ConfigValueType(value_type)
        raw = serialize_value(value, value_type)

        # 退款档位表写入前先校验
        if key == REFUND_FEE_TIERS_KEY:
            RefundTierTable.from_config(parse_value(raw, value_type))

        config = self.get(key)
        if config:
            config.value = raw
            config.type = value_type
            if description is not None:
                config.description = description
            config.category = category
        else:
            config = Configuration(
                key=key,
                value=raw,
                type=value_type,
                description=description,
                category=category,
            )
            self.db.add(config)

        self.db.commit()
        self.db.refresh(config)
        logger.info(f"Configuration {key} set ({value_type.value})")
        return config

    def initialize_defaults(self) -> int:
        """写入缺失的默认配置，返回新增条数"""
        created = 0
        for entry in DEFAULT_CONFIGURATIONS:
            if self.get(entry["key"]) is not None:
                continue
            self.db.add(Configuration(
                key=entry["key"],
                value=serialize_value(entry["value"], entry["type"]),
                type=entry["type"],
                description=entry["description"],
                category=entry["category"],
            ))
            created += 1
        if created:
            self.db.commit()
            logger.info(f"Seeded {created} default configurations")
        return created

    def get_refund_tier_table(self) -> RefundTierTable:
        """获取退款档位表（configurations 优先，其次 settings 默认值）"""
        entries = self.get_value(REFUND_FEE_TIERS_KEY)
        if entries is None:
            entries = settings.DEFAULT_REFUND_TIERS
        return RefundTierTable.from_config(entries)

    def get_refund_processing_days(self, payment_mode: Optional[PaymentMode]) -> int:
        """预计退款到账天数"""
        if payment_mode == PaymentMode.ONLINE:
            return int(self.get_value(REFUND_DAYS_ONLINE_KEY, settings.REFUND_PROCESSING_DAYS_ONLINE))
        return int(self.get_value(REFUND_DAYS_OFFLINE_KEY, settings.REFUND_PROCESSING_DAYS_OFFLINE))

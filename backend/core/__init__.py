"""
core - 定价与退款计算框架

与持久化、HTTP 无关的纯计算层，供 app 服务层组合使用：
- domain: 领域计算（有效价格解析、退款计算、退款生命周期、金额/时间工具）
- engine: 通用引擎（事件总线、状态机）

使用方式:
    >>> from core.domain import EffectivePriceResolver, RefundCalculator
    >>> from core.engine import event_bus, StateMachine

架构原则:
    - 纯函数计算，无隐藏状态
    - 配置与数据由调用方显式注入
"""

__version__ = "1.0.0"

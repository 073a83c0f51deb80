"""
枚举类型定义模块

定义应用中使用的所有枚举类型。
枚举用于限制字段只能取特定的值，提供类型安全和代码可读性。

所有枚举都继承自 str 和 Enum，这样既可以用作字符串，又具有枚举的特性。
"""
from enum import Enum  # 枚举类型，用于定义固定的选项集合


class SubscriptionStatus(str, Enum):
    """
    订阅状态枚举

    由 Apple 返回的时间戳推导，不单独维护：
    - in_trial: 试用期内
    - active: 已付费且未过期
    - in_grace: 续费失败，处于宽限期
    - expired: 已过期
    """
    in_trial = "in_trial"
    active = "active"
    in_grace = "in_grace"
    expired = "expired"


class Platform(str, Enum):
    """
    购买平台枚举

    - apple: App Store
    - google: Google Play（尚未实现校验）
    """
    apple = "apple"
    google = "google"


class StoreEnvironment(str, Enum):
    """
    App Store 环境枚举

    - production: 正式环境
    - sandbox: 沙盒环境（TestFlight / 开发构建）
    """
    production = "production"
    sandbox = "sandbox"


class PlanStore(str, Enum):
    """
    套餐适用的商店

    - apple / google: 仅对应商店
    - shared: 两个商店共用
    """
    apple = "apple"
    google = "google"
    shared = "shared"


class PlanPeriod(str, Enum):
    """套餐计费周期"""
    month = "month"
    year = "year"

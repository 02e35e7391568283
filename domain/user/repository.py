"""
用户仓储接口 - 定义数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional
from .entity import User


class UserRepository(ABC):
    """用户仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[User]:
        """根据ID获取用户"""
        pass

    @abstractmethod
    async def increment_students_enrolled(self, user_id: int, delta: int) -> None:
        """Atomic change of the instructor's total_students_enrolled counter."""
        pass

"""
校验错误类型与错误累加器

校验函数返回（而不是抛出）错误：无错误时返回 None，否则返回一个 ValidationError。
多个相互独立的检查结果通过 append_errors 合并，调用方可以逐条枚举其中的失败。
"""
from typing import Iterable, List, Optional


class ValidationError(Exception):
    """单条校验失败（所有校验错误的基类）"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def errors(self) -> List["ValidationError"]:
        """展开后的单条错误列表"""
        return [self]

    def messages(self) -> List[str]:
        return [e.message for e in self.errors]

    def with_prefix(self, prefix: str) -> "ValidationError":
        """返回带前缀的同类型错误副本"""
        return self.__class__(prefix + self.message)

    def __str__(self) -> str:
        return self.message


class ShapeError(ValidationError):
    """输入对象不是期望的资源类型（致命，不再做其他检查）"""


class FormatError(ValidationError):
    """标量不符合语法：DNS 标签、CIDR、时长编码、绝对路径等"""


class RangeError(ValidationError):
    """数值超出合法区间：端口、百分比、权重、时长上下界"""


class ConflictError(ValidationError):
    """同一对象上互斥或必须同时出现的字段冲突"""


class DuplicateError(ValidationError):
    """集合中出现了要求唯一的重复键"""


class ModeError(ValidationError):
    """字段合法性取决于其他字段（解析模式、TLS 模式）"""


class UnsupportedError(ValidationError):
    """语法合法但系统尚未支持的特性"""


class MissingFieldError(ValidationError):
    """必填字段或集合缺失"""


class MultiError(ValidationError):
    """多条校验失败的聚合结果"""

    def __init__(self, errors: Iterable[ValidationError]):
        self._errors: List[ValidationError] = []
        for err in errors:
            self._errors.extend(err.errors)
        super().__init__(self._render())

    @property
    def errors(self) -> List[ValidationError]:
        return list(self._errors)

    def with_prefix(self, prefix: str) -> "ValidationError":
        return MultiError(e.with_prefix(prefix) for e in self._errors)

    def _render(self) -> str:
        # 与控制平面多错误输出格式保持一致
        points = [f"* {e.message}" for e in self._errors]
        word = "error" if len(points) == 1 else "errors"
        return f"{len(points)} {word} occurred:\n\t" + "\n\t".join(points) + "\n\n"

    def __len__(self) -> int:
        return len(self._errors)


class ConfigLoadError(Exception):
    """无法把输入（文件、清单、集群对象）转换为类型化配置对象"""


def append_errors(err: Optional[ValidationError], *errs: Optional[ValidationError]) -> Optional[ValidationError]:
    """
    合并若干校验结果

    所有输入都为 None 时返回 None；否则返回包含每条失败的错误。
    只有一条失败时原样返回该错误，多条时返回 MultiError（已展开，保持顺序）。
    """
    collected: List[ValidationError] = []
    for e in (err,) + errs:
        if e is not None:
            collected.extend(e.errors)
    if not collected:
        return None
    if len(collected) == 1:
        return collected[0]
    return MultiError(collected)


def prefix_error(err: Optional[ValidationError], prefix: str) -> Optional[ValidationError]:
    """给错误中的每条消息加上前缀"""
    if err is None:
        return None
    return err.with_prefix(prefix)


def error_messages(err: Optional[ValidationError]) -> List[str]:
    """返回每条失败的消息；无错误时为空列表"""
    if err is None:
        return []
    return err.messages()


def format_error(e: BaseException) -> str:
    """面向运维的简短格式，如 'FormatError: detail'"""
    name = e.__class__.__name__
    msg = str(e).strip()
    return f"{name}: {msg}" if msg else name


__all__ = [
    "ValidationError",
    "ShapeError",
    "FormatError",
    "RangeError",
    "ConflictError",
    "DuplicateError",
    "ModeError",
    "UnsupportedError",
    "MissingFieldError",
    "MultiError",
    "ConfigLoadError",
    "append_errors",
    "prefix_error",
    "error_messages",
    "format_error",
]

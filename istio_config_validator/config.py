"""
校验工具的运行配置
"""

import json
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

OUTPUT_FORMATS = ("text", "json")


@dataclass
class ValidatorSettings:
    """运行配置"""

    # 日志配置
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # 输出格式: text 或 json
    output: str = "text"

    # 清单未写 metadata.namespace 时使用的命名空间
    default_namespace: str = "default"

    # 遇到未知 kind 时跳过（记录警告）而不是按加载错误处理
    skip_unknown_kinds: bool = False

    # 集群配置源
    kubeconfig: Optional[str] = None
    context: Optional[str] = None

    def __post_init__(self):
        if self.output not in OUTPUT_FORMATS:
            raise ValueError(f"output must be one of {', '.join(OUTPUT_FORMATS)}, got {self.output!r}")

    @classmethod
    def from_file(cls, config_file: str) -> 'ValidatorSettings':
        """从JSON配置文件加载配置"""
        with open(config_file, 'r', encoding='utf-8') as f:
            config_dict = json.load(f)
        return cls(**config_dict)

    def to_file(self, config_file: str):
        """保存配置到JSON文件"""
        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_settings: Optional[ValidatorSettings] = None


def get_settings() -> ValidatorSettings:
    """获取全局配置单例"""
    global _settings
    if _settings is None:
        _settings = ValidatorSettings()
    return _settings


def set_settings(settings: Optional[ValidatorSettings]):
    """设置全局配置，传入 None 时恢复默认"""
    global _settings
    _settings = settings


def load_settings_from_file(config_file: str) -> ValidatorSettings:
    """从文件加载全局配置"""
    settings = ValidatorSettings.from_file(config_file)
    set_settings(settings)
    return settings

"""
RBAC 模型（ServiceRole / ServiceRoleBinding / RbacConfig）
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


@dataclass
class Constraint:
    key: str = ""
    values: List[str] = field(default_factory=list)


@dataclass
class AccessRule:
    """一条访问规则"""
    services: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)
    methods: List[str] = field(default_factory=list)
    constraints: List[Constraint] = field(default_factory=list)


@dataclass
class ServiceRole:
    rules: List[AccessRule] = field(default_factory=list)


@dataclass
class Subject:
    user: str = ""
    group: str = ""
    properties: Dict[str, str] = field(default_factory=dict)


@dataclass
class RoleRef:
    kind: str = ""
    name: str = ""


@dataclass
class ServiceRoleBinding:
    subjects: List[Subject] = field(default_factory=list)
    role_ref: Optional[RoleRef] = None


class RbacMode(Enum):
    """RBAC 开关模式"""
    OFF = "OFF"
    ON = "ON"
    ON_WITH_INCLUSION = "ON_WITH_INCLUSION"
    ON_WITH_EXCLUSION = "ON_WITH_EXCLUSION"


@dataclass
class RbacTarget:
    services: List[str] = field(default_factory=list)
    namespaces: List[str] = field(default_factory=list)


@dataclass
class RbacConfig:
    mode: RbacMode = RbacMode.OFF
    inclusion: Optional[RbacTarget] = None
    exclusion: Optional[RbacTarget] = None

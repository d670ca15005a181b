"""
认证策略模型
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from istio_config_validator.models.common import PortSelector, oneof

# 命名空间级默认策略和集群级策略必须使用的名称
DEFAULT_AUTHENTICATION_POLICY_NAME = "default"


@dataclass
class TargetSelector:
    """策略作用的目标服务"""
    name: str = ""  # 服务短名
    ports: List[PortSelector] = field(default_factory=list)


@dataclass
class Jwt:
    """JWT 认证参数"""
    issuer: str = ""
    audiences: List[str] = field(default_factory=list)
    jwks_uri: str = ""
    jwt_headers: List[str] = field(default_factory=list)
    jwt_params: List[str] = field(default_factory=list)


@dataclass
class MutualTls:
    allow_tls: bool = False


@dataclass
class PeerAuthenticationMethod:
    """对端认证方式：mTLS 或 JWT"""
    params: Optional[object] = oneof(mtls=MutualTls, jwt=Jwt)

    @property
    def jwt(self) -> Optional[Jwt]:
        return self.params if isinstance(self.params, Jwt) else None


@dataclass
class OriginAuthenticationMethod:
    """请求来源认证方式"""
    jwt: Optional[Jwt] = None


class PrincipalBinding(Enum):
    USE_PEER = "USE_PEER"
    USE_ORIGIN = "USE_ORIGIN"


@dataclass
class Policy:
    targets: List[TargetSelector] = field(default_factory=list)
    peers: List[PeerAuthenticationMethod] = field(default_factory=list)
    origins: List[OriginAuthenticationMethod] = field(default_factory=list)
    principal_binding: PrincipalBinding = PrincipalBinding.USE_PEER

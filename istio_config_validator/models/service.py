"""
服务注册表模型：服务、端口、网络端点、服务实例
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from istio_config_validator.models.common import Hostname, Protocol


@dataclass
class Port:
    """服务端口"""
    name: str = ""
    port: int = 0
    protocol: Protocol = Protocol.TCP


@dataclass
class Service:
    """注册表中的服务"""
    hostname: Hostname = Hostname("")
    address: str = ""
    ports: List[Port] = field(default_factory=list)

    def get_port(self, name: str) -> Optional[Port]:
        for port in self.ports:
            if port.name == name:
                return port
        return None


class AddressFamily(Enum):
    TCP = "TCP"
    UNIX = "Unix"


@dataclass
class NetworkEndpoint:
    """网络端点：TCP 地址 + 端口，或 Unix 域套接字路径"""
    family: AddressFamily = AddressFamily.TCP
    address: str = ""
    port: int = 0
    service_port: Optional[Port] = None


@dataclass
class ServiceInstance:
    """服务的一个实例"""
    endpoint: NetworkEndpoint = field(default_factory=NetworkEndpoint)
    service: Optional[Service] = None
    labels: Dict[str, str] = field(default_factory=dict)

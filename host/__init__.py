"""Host process: tool registry runtime, RPC endpoint and bridge supervision."""

from .app import Host
from .integrations import write_client_config
from .prompt import ChoicePrompter, ChoiceResult
from .rpc import HostRpcServer
from .supervisor import BridgeProcess

__all__ = ["BridgeProcess", "ChoicePrompter", "ChoiceResult", "Host", "HostRpcServer", "write_client_config"]

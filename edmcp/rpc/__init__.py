from edmcp.rpc.types import ErrorCode, RpcError, RpcRequest, RpcResponse

__all__ = [
    "ErrorCode",
    "RpcError",
    "RpcRequest",
    "RpcResponse",
]

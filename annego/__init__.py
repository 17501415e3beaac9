"""Binary packet codec, TCP message server, admin console, connection pool, logging and containers."""

__version__ = "0.1.0"

__all__ = [
    "config",
    "connect",
    "console",
    "encoding",
    "logcontext",
    "logger",
    "maputil",
    "netaddr",
    "packet",
    "pool",
    "rbtree",
    "ringqueue",
    "server",
    "timer",
]
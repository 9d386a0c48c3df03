"""Linearizability checking, a key/value model, value encoding and MapReduce."""

__version__ = "0.1.0"

__all__ = [
    "bitset",
    "model",
    "checker",
    "kvmodel",
    "labgob",
    "kvcommon",
    "mrrpc",
    "master",
    "worker",
    "mrapps",
    "sequential",
    "cli",
]
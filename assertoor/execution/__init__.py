"""Execution client pool, block cache and JSON-RPC access."""
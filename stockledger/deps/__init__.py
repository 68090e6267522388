# Marks `stockledger.deps` as a package so routers can import
# `from ..deps.access import require_capabilities`.

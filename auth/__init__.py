"""
auth — Caller authentication for the integration API.

Provides:
  • Signed bearer token creation & verification (user id + tenant id)
  • ``get_principal`` FastAPI dependency
"""

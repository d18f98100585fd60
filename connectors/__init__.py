"""
connectors — per-tenant OAuth integration core.

Provides:
  • Provider catalog and per-provider connectors (GitHub, Slack, Google, Jira)
  • Authorization-URL generation with single-use CSRF state
  • Callback handling (code → token exchange)
  • Fernet encryption of tokens at rest, one token per tenant + provider
  • Background refresh of tokens nearing expiry
  • Per tenant + provider metrics and health
"""

"""Deal activity feed and security audit log.

Implements the log_deal_activity and log_security_event procedures used by
every other module to record what happened on a deal and which
security-relevant events occurred.
"""

"""
LogGuard - anomaly review and triage for uploaded security logs
"""

__version__ = "0.1.0"

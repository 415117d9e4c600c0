"""
Shared utilities for the RBAC Manager application
"""

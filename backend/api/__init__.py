"""
HTTP API packages
"""

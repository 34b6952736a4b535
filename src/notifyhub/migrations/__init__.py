"""
NotifyHub SQL migrations
"""

"""
NotifyHub

Multi-channel notification delivery hub for dealership staff.
"""
__version__ = "0.1.0"

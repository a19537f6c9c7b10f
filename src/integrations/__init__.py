"""
Clients for third-party services (abuse decision API).
"""

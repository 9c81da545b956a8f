"""
                Table Ordering System

Dine-in restaurant ordering backend: menu, cart checkout behind OTP
verification, kitchen display and admin back-office.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"

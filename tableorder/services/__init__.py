"""
                        Services Module

Business logic for the ordering API. External providers follow the hybrid
pattern: a Mock implementation for development and a Real one for
staging/production, chosen by ENV_MODE.

Services:
    - menu, orders, users: database-backed domain operations
    - otp, rate_limit: process-local verification and login throttling
    - notifications: SendGrid email / Twilio SMS delivery
    - payment: UPI payment verification
    - export, ledger: CSV export and the Excel order ledger
"""

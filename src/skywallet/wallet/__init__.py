"""
Wallet list, transaction building and signing.
"""

"""
sw_db_sync - copies a remote Shopware database into the local environment
"""

__version__ = "0.1.0"

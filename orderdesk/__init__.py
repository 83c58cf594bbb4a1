"""
                Order Desk

Order ingestion, offline fallback and new-order notification backend
for multi-tenant restaurant menus.

Author: Khalil_Bannouri
Version: 3.0.0
License: MIT
"""

__version__ = "3.0.0"
__author__ = "Khalil_Bannouri"

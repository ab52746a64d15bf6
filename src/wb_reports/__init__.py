"""
Wildberries Reports

Backend for downloading Wildberries seller reports (sales detail, paid storage,
paid acceptance, product catalog with cost price and advertising finances)
as spreadsheet files. Handles asynchronous report jobs, cursor pagination,
rate limiting and buffer-day reconciliation of upstream data.
"""

__version__ = "1.0.0"
__author__ = "WB Reports Team"

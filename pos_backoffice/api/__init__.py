"""
HTTP routers for orders, tables, invoices and stock
"""

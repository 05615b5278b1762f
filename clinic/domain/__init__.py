"""Domain packages: scheduling (appointment lifecycle) and billing (invoices)"""

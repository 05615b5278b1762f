"""Billing domain - invoices and the payment reminder trigger"""

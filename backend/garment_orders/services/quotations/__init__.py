"""Quotation to prefactura/order conversion."""

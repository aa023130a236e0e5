"""Ledgerly: dynamic typed tables, documents and analytics for small businesses."""

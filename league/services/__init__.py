"""Services package - league rules and the persistence-backed service."""

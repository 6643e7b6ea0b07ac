"""Servicios del Core: construcción de requests y dispatch de operaciones."""

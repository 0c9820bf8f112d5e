"""Capa de datos local-first de Gest-Immo Pro con réplica en Google Drive."""

__version__ = "1.0.0"

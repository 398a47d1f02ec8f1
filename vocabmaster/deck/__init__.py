"""Deck export module."""

from .exporter import AnkiExporter, cards_dataframe, export_csv

__all__ = ['AnkiExporter', 'cards_dataframe', 'export_csv']

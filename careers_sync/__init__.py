"""Scrape careers-page job postings, normalize them and sync them to a webhook."""

__version__ = "1.0.0"

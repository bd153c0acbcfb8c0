"""
Apartment Bot - Berlin rental listing watcher.

Polls wohnraumkarte.de (JSON API), Gewobag and Degewo (scraped portals),
applies automatically to new wohnraumkarte listings and posts every new
listing to a Telegram chat.
"""

__version__ = "0.1.0"

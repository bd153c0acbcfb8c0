from .listing import ListingRecord, SeenRecord, SessionToken, SourceTag

__all__ = ["ListingRecord", "SeenRecord", "SessionToken", "SourceTag"]

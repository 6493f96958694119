from .record_store import IChoiceMapProvider, IRecordStoreClient, StorePage

__all__ = ["IChoiceMapProvider", "IRecordStoreClient", "StorePage"]

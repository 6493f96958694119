from .sync_dto import ConnectionTestDTO, SyncSummaryDTO

__all__ = ["ConnectionTestDTO", "SyncSummaryDTO"]

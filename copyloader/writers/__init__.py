from copyloader.writers.copy_writer import PartitionUploader, UploadResult
from copyloader.writers.strategies import (
    PartitionWriteStrategy,
    StagingTableStrategy,
    TransactionStrategy,
    get_partition_strategy,
)

__all__ = [
    "PartitionUploader",
    "UploadResult",
    "PartitionWriteStrategy",
    "StagingTableStrategy",
    "TransactionStrategy",
    "get_partition_strategy",
]

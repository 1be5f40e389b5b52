from copyloader.engine.runner import PartitionTaskRunner, SuccessCounter, TaskRunSummary

__all__ = ["PartitionTaskRunner", "SuccessCounter", "TaskRunSummary"]

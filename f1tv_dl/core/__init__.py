"""
Core application engine for orchestrating downloads.

The `DownloadQueue` schedules jobs and reports their lifecycle on an
`EventBus`, delegating the choice of inputs and tracks for each job to the
`StreamPlanBuilder`.
"""

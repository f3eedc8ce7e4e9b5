# Monitor loop: continuous polling and one-shot last-hour scan.

from contract_monitor.agent_worker.runner import (
    MonitorLoop,
    run_continuous_monitor,
    run_last_hour_scan,
)

__all__ = ["MonitorLoop", "run_continuous_monitor", "run_last_hour_scan"]

# Command-line tools (python -m contract_monitor.tools.<name>).

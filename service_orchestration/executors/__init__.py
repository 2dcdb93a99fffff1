"""Executors that start, stop and health-check services for each target type."""
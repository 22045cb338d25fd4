"""Monitoring subsystem — probe executor, due selection, orchestration."""

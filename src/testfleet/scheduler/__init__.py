"""Capability-scoped scheduling and retry engine.

Tasks are loaded per (capability, spec file), dispatched into one bounded
pool per capability, awaited round by round behind a barrier and retried
while the reporter still lists errors and retries remain. Every exit path
ends in the process reaper.
"""

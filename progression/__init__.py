"""Sequence progression core.

Submodules:
- resolver: where a contact stands, from its email history
- walker: which step comes next, and when
- materializer: live advance after a completed task, and activation
- backfill: create missing next tasks across all enrollments
- dedup: delete duplicate pending sequence tasks
- diagnostics: read-only task report
"""

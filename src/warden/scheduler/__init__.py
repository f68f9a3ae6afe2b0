"""
Scheduled enforcement of time-bounded sanctions.

- **sanction_scheduler.py**: SanctionExpiryScheduler. One periodic sweep per
  sanction kind revokes expired mutes and bans through the Guild Directory on
  a bounded worker pool, removing store entries only after a confirmed
  revoke. Also reconciles a member's sanction state when they (re)join.

Key Features:
- Per-kind sweep interval, no overlapping sweeps of the same kind
- Per-entry fault isolation; failures are retried on the next sweep
- Graceful shutdown that lets an in-flight sweep drain
"""

"""Repository layer for the sequence progression service.

Provides query and write methods for the stores the progression core reads:
- sequences: get_by_id, get_all
- members: get_membership, get_all, get_active_pairs, enroll, remove
- contacts: resolve (people first, then legacy contacts)
- emails: get_for_member, get_scheduled_by_member, create_scheduled
- tasks: get_by_id, get_sequence_task_keys, list_tasks, list_for_user,
         create_task, create_tasks, delete_by_ids, mark_next_step_created
- observability: log_job_run
"""

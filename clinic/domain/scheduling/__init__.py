"""
Scheduling Domain

Appointment booking workflow for the clinic:
- time_rules.py   canonical working-hours / weekday / future-time predicate
- permissions.py  role-to-action table and the Caller identity
- conflicts.py    provider double-booking window and free-slot enumeration
- repository.py   appointment queries and the provider slot lock
- service.py      lifecycle state machine (create/approve/reject/reschedule/cancel/override)
- router.py       /appointments endpoints
"""

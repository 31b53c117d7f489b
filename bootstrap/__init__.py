"""bootstrap/ -- Exactly-once startup seeding guarded by a database lock document.

Layer rule: bootstrap/ imports from core/ only. The seeding work itself is
passed in as a callable, so bootstrap/ does not know what it seeds.
"""

"""
Locust scenario user classes.

- :mod:`.notification` -- the import notification journey, one journey
  per task iteration

Concrete scenarios inherit from the abstract base class in
:mod:`.base`, which handles identity assignment, the journey driver and
the per-user iteration budget.
"""

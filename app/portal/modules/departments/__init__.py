"""
Departments: the reference list-managed resource of the dashboard.

A department is just a name; products may belong to one.
"""

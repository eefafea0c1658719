"""
Products: list-managed like departments, optionally linked to a department.
"""

"""
Core comparison and synchronization logic, independent of any front end.
"""

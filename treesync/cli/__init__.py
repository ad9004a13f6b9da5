"""
Command line front ends: treesync-compare and treesync-apply.
"""

"""
Cluster provider modules.
"""
